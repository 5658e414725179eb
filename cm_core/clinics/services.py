# backend/cm_core/clinics/services.py
from __future__ import annotations

import logging
import random
import re
from dataclasses import dataclass, field
from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from cm_core.audit.services import AuditService
from cm_core.clinics.hierarchy import ClinicHierarchyRules, decide_placement
from cm_core.clinics.models import Clinic
from cm_core.common.api.exceptions import ConflictError
from cm_core.iam.services.membership import add_member, deactivate_clinic_memberships, user_clinic_ids
from cm_core.tenants.models import Tenant

logger = logging.getLogger(__name__)

CODE_EXISTS_MSG = "Clinic code already exists"
CODE_ATTEMPTS = 20

DEFAULT_WORKING_HOURS = {
    "monday": {"start": "09:00", "end": "17:00", "is_working": True},
    "tuesday": {"start": "09:00", "end": "17:00", "is_working": True},
    "wednesday": {"start": "09:00", "end": "17:00", "is_working": True},
    "thursday": {"start": "09:00", "end": "17:00", "is_working": True},
    "friday": {"start": "09:00", "end": "17:00", "is_working": True},
    "saturday": {"start": "09:00", "end": "13:00", "is_working": False},
    "sunday": {"start": "09:00", "end": "13:00", "is_working": False},
}


@dataclass(frozen=True)
class ClinicDetails:
    name: str
    code: str = ""
    description: str = ""

    street: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    country: str = ""

    phone: str = ""
    email: str = ""
    website: str = ""

    timezone: Optional[str] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    working_hours: dict = field(default_factory=dict)


@dataclass(frozen=True)
class ClinicUpdate:
    name: Optional[str] = None
    code: Optional[str] = None
    description: Optional[str] = None

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None

    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None

    timezone: Optional[str] = None
    currency: Optional[str] = None
    language: Optional[str] = None
    working_hours: Optional[dict] = None

    is_active: Optional[bool] = None


def _initials(name: str) -> str:
    words = [w for w in re.split(r"\s+", (name or "").strip()) if w]
    letters = "".join(w[0] for w in words).upper()
    letters = re.sub(r"[^A-Z0-9]", "", letters)
    return letters or "CL"


def generate_clinic_code(*, tenant_id: UUID, name: str) -> str:
    """
    Name initials plus three random digits, retried until unused in the tenant.
    """
    prefix = _initials(name)[:17]
    for _ in range(CODE_ATTEMPTS):
        code = f"{prefix}{random.randint(100, 999)}"
        if not Clinic.objects.filter(tenant_id=tenant_id, code=code).exists():
            return code
    raise ConflictError(CODE_EXISTS_MSG)


def _seed_default_statuses(*, tenant_id: UUID, clinic: Clinic) -> None:
    from cm_core.statuses.services import create_default_statuses

    try:
        with transaction.atomic():
            create_default_statuses(tenant_id=tenant_id, clinic_id=clinic.id)
    except Exception:
        logger.exception("Default appointment status seeding failed for clinic=%s", clinic.id)


class ClinicService:
    """
    Clinic write-model boundary.

    Placement (Main vs Sub) is decided here, never by the caller. Onboarding steps that
    follow the clinic insert (status seeding, MAIN warehouse) are best-effort: each runs in
    a savepoint and a failure there leaves the clinic committed.
    """

    @staticmethod
    @transaction.atomic
    def create(
        *,
        tenant_id: UUID,
        actor_user_id: int | None,
        details: ClinicDetails,
        warehouse_events=None,
    ) -> Clinic:
        from cm_core.warehouses.provisioning import provision_branch_warehouse

        # serializes concurrent creators in the same tenant (placement reads all clinics)
        tenant = Tenant.objects.select_for_update().get(id=tenant_id)

        member_ids = user_clinic_ids(user_id=actor_user_id, tenant_id=tenant_id) if actor_user_id else []
        placement = decide_placement(tenant_id=tenant_id, member_clinic_ids=member_ids)

        ClinicHierarchyRules.validate_clinic_business_rules(
            tenant_id=tenant_id,
            is_main_clinic=placement.is_main_clinic,
            parent_clinic_id=placement.parent_clinic_id,
        )

        code = (details.code or "").strip().upper() or generate_clinic_code(tenant_id=tenant_id, name=details.name)

        extra = {}
        for attr in ("timezone", "currency", "language"):
            value = getattr(details, attr)
            if value:
                extra[attr] = value

        try:
            with transaction.atomic():
                clinic = Clinic.objects.create(
                    tenant=tenant,
                    name=details.name.strip(),
                    code=code,
                    description=details.description or "",
                    street=details.street or "",
                    city=details.city or "",
                    state=details.state or "",
                    zip_code=details.zip_code or "",
                    country=details.country or "",
                    phone=details.phone or "",
                    email=details.email or "",
                    website=details.website or "",
                    working_hours=details.working_hours or dict(DEFAULT_WORKING_HOURS),
                    is_main_clinic=placement.is_main_clinic,
                    parent_clinic_id=placement.parent_clinic_id,
                    is_active=True,
                    **extra,
                )
        except IntegrityError:
            raise ConflictError(CODE_EXISTS_MSG)

        if actor_user_id:
            add_member(tenant_id=tenant_id, clinic_id=clinic.id, user_id=actor_user_id)

        AuditService.log(
            event_code="clinic.created",
            entity_type="Clinic",
            entity_id=clinic.id,
            tenant_id=tenant_id,
            clinic_id=clinic.id,
            actor_user_id=actor_user_id,
            metadata={"code": clinic.code, "level": clinic.hierarchy_level},
        )
        logger.info(
            "Clinic created id=%s tenant=%s level=%s parent=%s",
            clinic.id,
            tenant_id,
            clinic.hierarchy_level,
            clinic.parent_clinic_id,
        )

        _seed_default_statuses(tenant_id=tenant_id, clinic=clinic)
        provision_branch_warehouse(tenant_id=tenant_id, branch=clinic, events=warehouse_events)
        return clinic

    @staticmethod
    @transaction.atomic
    def update(*, tenant_id: UUID, clinic_id: UUID, patch: ClinicUpdate, actor_user_id: int | None = None) -> Clinic:
        """
        Partial update of descriptive fields. is_active=False takes the deactivate path
        (memberships revoked, clinic.deactivated audited); is_active=True reactivates.
        """
        c = Clinic.objects.select_for_update().get(id=clinic_id, tenant_id=tenant_id)

        if patch.is_active is not None:
            ClinicHierarchyRules.validate_main_status_change(
                is_main_clinic=c.is_main_clinic,
                new_is_active=patch.is_active,
            )

        mapping = {
            "name": patch.name,
            "code": patch.code.strip().upper() if patch.code else None,
            "description": patch.description,
            "street": patch.street,
            "city": patch.city,
            "state": patch.state,
            "zip_code": patch.zip_code,
            "country": patch.country,
            "phone": patch.phone,
            "email": patch.email,
            "website": patch.website,
            "timezone": patch.timezone,
            "currency": patch.currency,
            "language": patch.language,
            "working_hours": patch.working_hours,
        }
        changed = []
        for k, v in mapping.items():
            if v is not None:
                setattr(c, k, v)
                changed.append(k)

        if patch.is_active is True and not c.is_active:
            c.is_active = True
            c.deactivated_at = None
            changed.append("is_active")

        try:
            with transaction.atomic():
                c.save()
        except IntegrityError:
            raise ConflictError(CODE_EXISTS_MSG)

        if changed:
            AuditService.log(
                event_code="clinic.updated",
                entity_type="Clinic",
                entity_id=c.id,
                tenant_id=tenant_id,
                clinic_id=c.id,
                actor_user_id=actor_user_id,
                metadata={"updated_fields": sorted(changed)},
            )

        if patch.is_active is False and c.is_active:
            ClinicService._deactivate_locked(c, tenant_id=tenant_id, actor_user_id=actor_user_id)
        return c

    @staticmethod
    @transaction.atomic
    def deactivate(*, tenant_id: UUID, clinic_id: UUID, actor_user_id: int | None = None) -> Clinic:
        c = Clinic.objects.select_for_update().get(id=clinic_id, tenant_id=tenant_id)

        ClinicHierarchyRules.validate_main_deletion(clinic=c)
        ClinicHierarchyRules.validate_main_status_change(is_main_clinic=c.is_main_clinic, new_is_active=False)

        if not c.is_active:
            raise ValidationError({"detail": "Clinic is already inactive."})

        return ClinicService._deactivate_locked(c, tenant_id=tenant_id, actor_user_id=actor_user_id)

    @staticmethod
    def _deactivate_locked(c: Clinic, *, tenant_id: UUID, actor_user_id: int | None) -> Clinic:
        # caller holds the row lock and has run the hierarchy rules
        c.is_active = False
        c.deactivated_at = timezone.now()
        c.save(update_fields=["is_active", "deactivated_at", "updated_at"])

        revoked = deactivate_clinic_memberships(tenant_id=tenant_id, clinic_id=c.id)

        AuditService.log(
            event_code="clinic.deactivated",
            entity_type="Clinic",
            entity_id=c.id,
            tenant_id=tenant_id,
            clinic_id=c.id,
            actor_user_id=actor_user_id,
            metadata={"memberships_revoked": revoked},
        )
        logger.info("Clinic deactivated id=%s tenant=%s memberships_revoked=%s", c.id, tenant_id, revoked)
        return c
