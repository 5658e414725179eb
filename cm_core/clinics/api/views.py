# backend/cm_core/clinics/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied, ValidationError
from rest_framework.response import Response

from cm_core.clinics.api.permissions import ClinicPermission
from cm_core.clinics.api.serializers import (
    ClinicCreateSerializer,
    ClinicHierarchySerializer,
    ClinicMemberAddSerializer,
    ClinicMemberRoleSerializer,
    ClinicMemberSerializer,
    ClinicSerializer,
    ClinicStatsSerializer,
    ClinicUpdateSerializer,
)
from cm_core.clinics.models import Clinic
from cm_core.clinics.selectors import (
    clinic_by_id,
    clinics_for_tenant,
    clinics_for_user,
    main_clinic_for_tenant,
    sub_clinics,
)
from cm_core.clinics.services import ClinicDetails, ClinicService, ClinicUpdate
from cm_core.common.api.pagination import paginate
from cm_core.iam.scope import MISSING_SCOPE_MSG, NO_CLINIC_ACCESS_MSG, require_scope
from cm_core.iam.services.membership import (
    change_member_role,
    clinic_members,
    grant_membership,
    is_user_member_of_clinic,
    member_role_counts,
    remove_member,
)
from cm_core.warehouses.apps import get_event_bus


def _actor_id(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _tenant_from_request(request) -> UUID:
    tenant_id = getattr(request, "tenant_id", None)
    if not tenant_id:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})
    return UUID(str(tenant_id))


def _truthy(value: str | None, default: bool = True) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "y", "on"}


@extend_schema_view(
    list=extend_schema(
        tags=["Clinics"],
        parameters=[OpenApiParameter("active_only", OpenApiTypes.BOOL, OpenApiParameter.QUERY, required=False)],
        responses={200: ClinicSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Clinics"], responses={200: ClinicSerializer}),
    create=extend_schema(tags=["Clinics"], request=ClinicCreateSerializer, responses={201: ClinicSerializer}),
    partial_update=extend_schema(tags=["Clinics"], request=ClinicUpdateSerializer, responses={200: ClinicSerializer}),
    deactivate=extend_schema(tags=["Clinics"], request=None, responses={200: ClinicSerializer}),
    hierarchy=extend_schema(tags=["Clinics"], responses={200: ClinicHierarchySerializer}),
    mine=extend_schema(tags=["Clinics"], responses={200: ClinicSerializer(many=True)}),
    current=extend_schema(tags=["Clinics"], responses={200: ClinicSerializer}),
    stats=extend_schema(tags=["Clinics"], responses={200: ClinicStatsSerializer}),
    users=extend_schema(
        tags=["Clinic members"],
        parameters=[OpenApiParameter("role", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False)],
        request=ClinicMemberAddSerializer,
        responses={200: ClinicMemberSerializer(many=True), 201: ClinicMemberSerializer},
    ),
    member=extend_schema(
        tags=["Clinic members"],
        parameters=[OpenApiParameter("user_id", OpenApiTypes.INT, OpenApiParameter.PATH)],
        request=ClinicMemberRoleSerializer,
        responses={200: ClinicMemberSerializer, 204: None},
    ),
)
class ClinicViewSet(viewsets.ViewSet):
    """
    Branches of the current tenant.
    New clinics are placed in the Main/Sub tree server-side; clients cannot choose.
    Members of a clinic are managed under {id}/users/.
    """
    permission_classes = [ClinicPermission]

    serializer_class = ClinicSerializer
    queryset = Clinic.objects.none()

    def list(self, request):
        scope = require_scope(request)
        qs = clinics_for_tenant(
            tenant_id=scope.tenant_id,
            active_only=_truthy(request.query_params.get("active_only")),
        )
        return Response(ClinicSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        obj = clinic_by_id(tenant_id=scope.tenant_id, clinic_id=UUID(str(pk)))
        return Response(ClinicSerializer(obj).data, status=status.HTTP_200_OK)

    def create(self, request):
        tenant_id = _tenant_from_request(request)

        s = ClinicCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        clinic = ClinicService.create(
            tenant_id=tenant_id,
            actor_user_id=_actor_id(request),
            details=ClinicDetails(**s.validated_data),
            warehouse_events=get_event_bus(),
        )
        return Response(ClinicSerializer(clinic).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        scope = require_scope(request)

        s = ClinicUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)

        obj = ClinicService.update(
            tenant_id=scope.tenant_id,
            clinic_id=UUID(str(pk)),
            patch=ClinicUpdate(**s.validated_data),
            actor_user_id=_actor_id(request),
        )
        return Response(ClinicSerializer(obj).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["post"], url_path="deactivate")
    def deactivate(self, request, pk=None):
        scope = require_scope(request)
        obj = ClinicService.deactivate(
            tenant_id=scope.tenant_id,
            clinic_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
        )
        return Response(ClinicSerializer(obj).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="hierarchy")
    def hierarchy(self, request):
        scope = require_scope(request)
        main = main_clinic_for_tenant(tenant_id=scope.tenant_id)
        subs = sub_clinics(tenant_id=scope.tenant_id, main_clinic_id=main.id) if main else Clinic.objects.none()
        data = ClinicHierarchySerializer({"main_clinic": main, "sub_clinics": list(subs)}).data
        return Response(data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="mine")
    def mine(self, request):
        tenant_id = _tenant_from_request(request)
        qs = clinics_for_user(tenant_id=tenant_id, user_id=request.user.id)
        return Response(ClinicSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="current")
    def current(self, request):
        scope = require_scope(request)
        obj = clinic_by_id(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        return Response(ClinicSerializer(obj).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="stats")
    def stats(self, request, pk=None):
        """Member headcount by role. Only members of the clinic may read it."""
        scope = require_scope(request)
        obj = clinic_by_id(tenant_id=scope.tenant_id, clinic_id=UUID(str(pk)))

        user = request.user
        if not user.is_superuser and not is_user_member_of_clinic(
            user_id=user.id, tenant_id=scope.tenant_id, clinic_id=obj.id
        ):
            raise PermissionDenied(NO_CLINIC_ACCESS_MSG)

        by_role = member_role_counts(tenant_id=scope.tenant_id, clinic_id=obj.id)
        data = ClinicStatsSerializer(
            {"clinic_info": obj, "users": {"total": sum(by_role.values()), "by_role": by_role}}
        ).data
        return Response(data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get", "post"], url_path="users")
    def users(self, request, pk=None):
        scope = require_scope(request)
        obj = clinic_by_id(tenant_id=scope.tenant_id, clinic_id=UUID(str(pk)))

        if request.method == "GET":
            qs = clinic_members(
                tenant_id=scope.tenant_id,
                clinic_id=obj.id,
                role_code=request.query_params.get("role") or None,
            )
            return paginate(request, qs, ClinicMemberSerializer)

        s = ClinicMemberAddSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        membership, created = grant_membership(
            tenant_id=scope.tenant_id,
            clinic_id=obj.id,
            user_id=s.validated_data["user_id"],
            role_code=s.validated_data["role"],
            actor_user_id=_actor_id(request),
        )
        return Response(
            ClinicMemberSerializer(membership).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=True, methods=["put", "patch", "delete"], url_path=r"users/(?P<user_id>[0-9]+)")
    def member(self, request, pk=None, user_id=None):
        scope = require_scope(request)
        obj = clinic_by_id(tenant_id=scope.tenant_id, clinic_id=UUID(str(pk)))

        if request.method == "DELETE":
            remove_member(
                tenant_id=scope.tenant_id,
                clinic_id=obj.id,
                user_id=int(user_id),
                actor_user_id=_actor_id(request),
            )
            return Response(status=status.HTTP_204_NO_CONTENT)

        s = ClinicMemberRoleSerializer(data=request.data)
        s.is_valid(raise_exception=True)

        membership = change_member_role(
            tenant_id=scope.tenant_id,
            clinic_id=obj.id,
            user_id=int(user_id),
            role_code=s.validated_data["role"],
            actor_user_id=_actor_id(request),
        )
        return Response(ClinicMemberSerializer(membership).data, status=status.HTTP_200_OK)
