# backend/cm_core/tenants/services.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from rest_framework.exceptions import ValidationError

from cm_core.audit.services import AuditService
from cm_core.common.api.exceptions import ConflictError
from cm_core.tenants.models import Tenant, TenantStatus

logger = logging.getLogger(__name__)

DUPLICATE_CODE_MSG = "Tenant code already exists"


def _check_status(status: str) -> None:
    if status not in TenantStatus.values:
        raise ValidationError({"status": f"Invalid status. Allowed: {list(TenantStatus.values)}"})


class TenantService:
    """
    Tenant write-model. Clinics are created separately; the first one becomes the Main Clinic.
    """

    @staticmethod
    def create(
        *,
        name: str,
        code: str,
        metadata: Optional[dict] = None,
        status: str = TenantStatus.ACTIVE,
        actor_user_id: Optional[int] = None,
    ) -> Tenant:
        name, code = (name or "").strip(), (code or "").strip().lower()
        missing = {f: "This field is required." for f, v in (("name", name), ("code", code)) if not v}
        if missing:
            raise ValidationError(missing)
        _check_status(status)

        try:
            with transaction.atomic():
                tenant = Tenant.objects.create(name=name, code=code, status=status, metadata=metadata or {})
                AuditService.log(
                    event_code="tenant.created",
                    entity_type="Tenant",
                    entity_id=tenant.id,
                    tenant_id=tenant.id,
                    actor_user_id=actor_user_id,
                )
        except IntegrityError:
            raise ConflictError({"detail": DUPLICATE_CODE_MSG, "field": "code"})

        logger.info("Tenant created id=%s code=%s", tenant.id, tenant.code)
        return tenant

    @staticmethod
    @transaction.atomic
    def set_status(*, tenant_id: UUID, status: str, actor_user_id: Optional[int] = None) -> Tenant:
        _check_status(status)

        tenant = Tenant.objects.select_for_update().get(id=tenant_id)
        previous = tenant.status
        if previous == status:
            return tenant

        tenant.status = status
        tenant.save(update_fields=["status", "updated_at"])
        AuditService.log(
            event_code="tenant.status_changed",
            entity_type="Tenant",
            entity_id=tenant.id,
            tenant_id=tenant.id,
            actor_user_id=actor_user_id,
            metadata={"from": previous, "to": status},
        )
        logger.info("Tenant %s status %s -> %s", tenant.id, previous, status)
        return tenant

    @staticmethod
    @transaction.atomic
    def update_metadata(*, tenant_id: UUID, metadata: dict, replace: bool = False) -> Tenant:
        """Shallow-merge into the stored metadata, or replace it outright."""
        if not isinstance(metadata, dict):
            raise ValidationError({"metadata": "Expected an object."})

        tenant = Tenant.objects.select_for_update().get(id=tenant_id)
        tenant.metadata = dict(metadata) if replace else {**(tenant.metadata or {}), **metadata}
        tenant.save(update_fields=["metadata", "updated_at"])
        return tenant
