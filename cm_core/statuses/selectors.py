# backend/cm_core/statuses/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from cm_core.statuses.models import AppointmentStatus


def statuses_for_clinic(*, tenant_id: UUID, clinic_id: UUID, active_only: bool = True) -> QuerySet[AppointmentStatus]:
    qs = AppointmentStatus.objects.filter(tenant_id=tenant_id, clinic_id=clinic_id)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.order_by("order", "code")


def status_exists(*, tenant_id: UUID, clinic_id: UUID, code: str) -> bool:
    return AppointmentStatus.objects.filter(
        tenant_id=tenant_id,
        clinic_id=clinic_id,
        code=(code or "").strip().lower(),
        is_active=True,
    ).exists()


def default_status(*, tenant_id: UUID, clinic_id: UUID) -> Optional[AppointmentStatus]:
    return (
        statuses_for_clinic(tenant_id=tenant_id, clinic_id=clinic_id)
        .filter(is_default=True)
        .first()
    )
