# backend/cm_core/tenants/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response

from cm_core.common.api.pagination import paginate
from cm_core.tenants.api.serializers import (
    TenantCreateSerializer,
    TenantMetadataUpdateSerializer,
    TenantSerializer,
    TenantStatusUpdateSerializer,
)
from cm_core.tenants.models import Tenant
from cm_core.tenants.selectors import get_tenant, tenant_qs
from cm_core.tenants.services import TenantService


@extend_schema_view(
    list=extend_schema(
        tags=["Tenants"],
        parameters=[
            OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("q", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
        ],
        responses={200: TenantSerializer(many=True)},
    ),
    retrieve=extend_schema(tags=["Tenants"], responses={200: TenantSerializer}),
    create=extend_schema(tags=["Tenants"], request=TenantCreateSerializer, responses={201: TenantSerializer}),
    set_status=extend_schema(tags=["Tenants"], request=TenantStatusUpdateSerializer, responses={200: TenantSerializer}),
    update_metadata=extend_schema(
        tags=["Tenants"], request=TenantMetadataUpdateSerializer, responses={200: TenantSerializer}
    ),
)
class TenantViewSet(viewsets.ViewSet):
    """
    Platform-admin tenant management. Unscoped: no X-Tenant-Id / X-Clinic-Id needed.
    """

    permission_classes = [IsAdminUser]

    serializer_class = TenantSerializer
    queryset = Tenant.objects.none()

    def list(self, request):
        qs = tenant_qs(status=request.query_params.get("status"), q=request.query_params.get("q"))
        return paginate(request, qs, TenantSerializer)

    def retrieve(self, request, pk=None):
        return Response(TenantSerializer(get_tenant(tenant_id=UUID(str(pk)))).data)

    def create(self, request):
        ser = TenantCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.create(**ser.validated_data, actor_user_id=request.user.id)
        return Response(TenantSerializer(tenant).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], url_path="set-status")
    def set_status(self, request, pk=None):
        ser = TenantStatusUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.set_status(
            tenant_id=UUID(str(pk)),
            status=ser.validated_data["status"],
            actor_user_id=request.user.id,
        )
        return Response(TenantSerializer(tenant).data)

    @action(detail=True, methods=["patch"], url_path="metadata")
    def update_metadata(self, request, pk=None):
        ser = TenantMetadataUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        tenant = TenantService.update_metadata(tenant_id=UUID(str(pk)), **ser.validated_data)
        return Response(TenantSerializer(tenant).data)
