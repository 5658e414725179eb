# backend/cm_core/audit/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from cm_core.audit.models import AuditEvent


def list_audit_events(*, tenant_id: UUID) -> QuerySet[AuditEvent]:
    """A tenant's audit trail, newest first; narrowed further by AuditEventFilter."""
    return AuditEvent.objects.filter(tenant_id=tenant_id).select_related("actor_user").order_by("-occurred_at")


def entity_history(*, tenant_id: UUID, entity_type: str, entity_id: UUID) -> QuerySet[AuditEvent]:
    return list_audit_events(tenant_id=tenant_id).filter(entity_type=entity_type, entity_id=entity_id)
