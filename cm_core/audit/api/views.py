# backend/cm_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets
from rest_framework.exceptions import ValidationError

from cm_core.audit.api.filters import AuditEventFilter
from cm_core.audit.api.serializers import AuditEventSerializer
from cm_core.audit.models import AuditEvent
from cm_core.audit.selectors import list_audit_events
from cm_core.common.api.pagination import paginate
from cm_core.common.permissions import AuditPermission
from cm_core.iam.scope import require_scope


class AuditEventViewSet(viewsets.GenericViewSet):
    """Tenant audit trail (ADMIN only)."""

    permission_classes = [AuditPermission]

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter("entity_type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("entity_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("event_code", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("event_prefix", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("clinic_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("since", OpenApiTypes.DATETIME, OpenApiParameter.QUERY, required=False),
            OpenApiParameter("until", OpenApiTypes.DATETIME, OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        scope = require_scope(request)

        fs = AuditEventFilter(request.query_params, queryset=list_audit_events(tenant_id=scope.tenant_id), request=request)
        if not fs.is_valid():
            raise ValidationError(fs.errors)
        return paginate(request, fs.qs, AuditEventSerializer)
