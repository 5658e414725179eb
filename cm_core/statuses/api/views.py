# backend/cm_core/statuses/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.utils import extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from cm_core.common.permissions import AppointmentStatusPermission
from cm_core.iam.scope import require_scope
from cm_core.statuses.api.serializers import AppointmentStatusSerializer
from cm_core.statuses.models import AppointmentStatus
from cm_core.statuses.selectors import default_status, statuses_for_clinic


@extend_schema_view(
    list=extend_schema(tags=["Appointment statuses"], responses={200: AppointmentStatusSerializer(many=True)}),
    retrieve=extend_schema(tags=["Appointment statuses"], responses={200: AppointmentStatusSerializer}),
    default=extend_schema(tags=["Appointment statuses"], responses={200: AppointmentStatusSerializer}),
)
class AppointmentStatusViewSet(viewsets.ViewSet):
    permission_classes = [AppointmentStatusPermission]

    serializer_class = AppointmentStatusSerializer
    queryset = AppointmentStatus.objects.none()

    def list(self, request):
        scope = require_scope(request)
        qs = statuses_for_clinic(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        return Response(AppointmentStatusSerializer(qs, many=True).data, status=status.HTTP_200_OK)

    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        obj = statuses_for_clinic(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, active_only=False).get(
            id=UUID(str(pk))
        )
        return Response(AppointmentStatusSerializer(obj).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="default")
    def default(self, request):
        scope = require_scope(request)
        obj = default_status(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        if obj is None:
            raise NotFound("No default appointment status configured.")
        return Response(AppointmentStatusSerializer(obj).data, status=status.HTTP_200_OK)
