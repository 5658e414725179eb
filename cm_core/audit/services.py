# backend/cm_core/audit/services.py
from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

from cm_core.audit.models import AuditEvent

logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit writer. Call it inside the mutation's transaction so the row commits
    or rolls back together with the change it describes.
    """

    @staticmethod
    def log(
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        tenant_id: UUID,
        clinic_id: Optional[UUID] = None,
        actor_user_id: Optional[int] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> AuditEvent:
        event = AuditEvent.objects.create(
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            actor_user_id=actor_user_id,
            metadata=dict(metadata or {}),
        )
        logger.debug("audit %s %s:%s tenant=%s", event_code, entity_type, entity_id, tenant_id)
        return event
