# backend/cm_core/clinics/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import QuerySet

from cm_core.clinics.models import Clinic


def clinics_for_tenant(*, tenant_id: UUID, active_only: bool = True) -> QuerySet[Clinic]:
    qs = Clinic.objects.filter(tenant_id=tenant_id)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.order_by("-is_main_clinic", "name")


def clinic_by_id(*, tenant_id: UUID, clinic_id: UUID) -> Clinic:
    return Clinic.objects.get(id=clinic_id, tenant_id=tenant_id)


def main_clinic_for_tenant(*, tenant_id: UUID) -> Optional[Clinic]:
    return Clinic.objects.filter(tenant_id=tenant_id, is_main_clinic=True, is_active=True).order_by("created_at").first()


def sub_clinics(*, tenant_id: UUID, main_clinic_id: UUID, active_only: bool = True) -> QuerySet[Clinic]:
    qs = Clinic.objects.filter(tenant_id=tenant_id, parent_clinic_id=main_clinic_id, is_main_clinic=False)
    if active_only:
        qs = qs.filter(is_active=True)
    return qs.order_by("name")


def clinics_for_user(*, tenant_id: UUID, user_id: int) -> QuerySet[Clinic]:
    """
    Active clinics the user holds an active membership in.
    """
    return (
        clinics_for_tenant(tenant_id=tenant_id)
        .filter(
            memberships__user_profile__user_id=user_id,
            memberships__user_profile__is_active=True,
            memberships__is_active=True,
        )
        .distinct()
    )
