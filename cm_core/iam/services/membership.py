# backend/cm_core/iam/services/membership.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Count, QuerySet
from rest_framework.exceptions import NotFound, ValidationError

from cm_core.audit.services import AuditService
from cm_core.clinics.models import Clinic
from cm_core.iam.models import ClinicMembership, Role, UserProfile

logger = logging.getLogger(__name__)

ADMIN_ROLE_CODE = "admin"

USER_NOT_FOUND_MSG = "User not found"
MEMBER_NOT_FOUND_MSG = "User not found in this clinic"
ALREADY_MEMBER_MSG = "User is already associated with this clinic"
OTHER_TENANT_MSG = "User belongs to another tenant"
INACTIVE_CLINIC_MSG = "Cannot add users to an inactive clinic"
LAST_ADMIN_MSG = "Cannot remove yourself as the only admin"


def active_memberships(*, user_id: int, tenant_id: UUID) -> QuerySet[ClinicMembership]:
    return ClinicMembership.objects.active().of_user(user_id).filter(tenant_id=tenant_id).select_related("clinic", "role")


def user_clinic_ids(*, user_id: int, tenant_id: UUID) -> list[UUID]:
    return list(active_memberships(user_id=user_id, tenant_id=tenant_id).values_list("clinic_id", flat=True))


def is_user_member_of_clinic(*, user_id: int, tenant_id: UUID, clinic_id: UUID) -> bool:
    """
    Single source of truth for scope enforcement: active profile, active membership,
    same tenant.
    """
    return ClinicMembership.objects.active().of_user(user_id).filter(tenant_id=tenant_id, clinic_id=clinic_id).exists()


def is_user_in_tenant(*, user_id: int, tenant_id: UUID) -> bool:
    """Tenant-level check for the first clinic of a tenant, when no membership can exist yet."""
    return UserProfile.objects.filter(user_id=user_id, tenant_id=tenant_id, is_active=True).exists()


def clinic_members(*, tenant_id: UUID, clinic_id: UUID, role_code: Optional[str] = None) -> QuerySet[ClinicMembership]:
    qs = (
        ClinicMembership.objects.active()
        .filter(tenant_id=tenant_id, clinic_id=clinic_id)
        .select_related("user_profile__user", "role")
    )
    if role_code:
        qs = qs.filter(role__code=role_code)
    return qs.order_by("joined_at")


def member_role_counts(*, tenant_id: UUID, clinic_id: UUID) -> dict[str, int]:
    rows = (
        clinic_members(tenant_id=tenant_id, clinic_id=clinic_id)
        .values("role__code")
        .annotate(n=Count("id"))
        .order_by("role__code")
    )
    return {r["role__code"]: r["n"] for r in rows}


def _role(*, tenant_id: UUID, role_code: str) -> Role:
    role, _ = Role.objects.get_or_create(
        tenant_id=tenant_id,
        code=role_code,
        defaults={"name": role_code.replace("-", " ").title()},
    )
    return role


def _active_member(*, tenant_id: UUID, clinic_id: UUID, user_id: int) -> ClinicMembership:
    membership = (
        clinic_members(tenant_id=tenant_id, clinic_id=clinic_id)
        .filter(user_profile__user_id=user_id)
        .select_for_update(of=("self",))
        .first()
    )
    if membership is None:
        raise NotFound(MEMBER_NOT_FOUND_MSG)
    return membership


@transaction.atomic
def add_member(*, tenant_id: UUID, clinic_id: UUID, user_id: int, role_code: str = ADMIN_ROLE_CODE) -> ClinicMembership:
    """
    Grant (or restore) a user's membership of a clinic. Profile and role rows are
    created on demand, so calling this twice is harmless. A restored membership
    takes the given role.
    """
    profile, _ = UserProfile.objects.get_or_create(user_id=user_id, defaults={"tenant_id": tenant_id})
    role = _role(tenant_id=tenant_id, role_code=role_code)

    membership, created = ClinicMembership.objects.get_or_create(
        clinic_id=clinic_id,
        user_profile=profile,
        defaults={"tenant_id": tenant_id, "role": role},
    )
    if not created and not membership.is_active:
        membership.is_active = True
        membership.revoked_at = None
        membership.role = role
        membership.save(update_fields=["is_active", "revoked_at", "role"])
    return membership


@transaction.atomic
def grant_membership(
    *,
    tenant_id: UUID,
    clinic_id: UUID,
    user_id: int,
    role_code: str,
    actor_user_id: Optional[int] = None,
) -> tuple[ClinicMembership, bool]:
    """
    Admin-facing add: the user must exist, must not belong to another tenant and
    must not already be an active member. Returns (membership, created); a revoked
    membership is reactivated rather than duplicated.
    """
    if not Clinic.objects.filter(id=clinic_id, tenant_id=tenant_id, is_active=True).exists():
        raise ValidationError({"detail": INACTIVE_CLINIC_MSG})

    if not get_user_model().objects.filter(id=user_id, is_active=True).exists():
        raise NotFound(USER_NOT_FOUND_MSG)

    profile = UserProfile.objects.filter(user_id=user_id).first()
    if profile is not None and profile.tenant_id != tenant_id:
        raise ValidationError({"user_id": OTHER_TENANT_MSG})
    if profile is not None and not profile.is_active:
        raise NotFound(USER_NOT_FOUND_MSG)

    existing = ClinicMembership.objects.filter(clinic_id=clinic_id, user_profile__user_id=user_id).first()
    if existing is not None and existing.is_active:
        raise ValidationError({"detail": ALREADY_MEMBER_MSG})

    membership = add_member(tenant_id=tenant_id, clinic_id=clinic_id, user_id=user_id, role_code=role_code)
    created = existing is None

    AuditService.log(
        event_code="clinic.member_added",
        entity_type="ClinicMembership",
        entity_id=membership.id,
        tenant_id=tenant_id,
        clinic_id=clinic_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": user_id, "role": role_code, "reactivated": not created},
    )
    logger.info("User %s %s clinic %s as %s", user_id, "added to" if created else "restored in", clinic_id, role_code)
    return membership, created


@transaction.atomic
def change_member_role(
    *,
    tenant_id: UUID,
    clinic_id: UUID,
    user_id: int,
    role_code: str,
    actor_user_id: Optional[int] = None,
) -> ClinicMembership:
    membership = _active_member(tenant_id=tenant_id, clinic_id=clinic_id, user_id=user_id)
    previous = membership.role.code
    if previous == role_code:
        return membership

    membership.role = _role(tenant_id=tenant_id, role_code=role_code)
    membership.save(update_fields=["role"])

    AuditService.log(
        event_code="clinic.member_role_changed",
        entity_type="ClinicMembership",
        entity_id=membership.id,
        tenant_id=tenant_id,
        clinic_id=clinic_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": user_id, "from": previous, "to": role_code},
    )
    return membership


@transaction.atomic
def remove_member(*, tenant_id: UUID, clinic_id: UUID, user_id: int, actor_user_id: Optional[int] = None) -> None:
    """
    Revoke one membership. An admin may not remove themselves while they are the
    clinic's only admin.
    """
    membership = _active_member(tenant_id=tenant_id, clinic_id=clinic_id, user_id=user_id)

    if user_id == actor_user_id and membership.role.code == ADMIN_ROLE_CODE:
        admins = clinic_members(tenant_id=tenant_id, clinic_id=clinic_id, role_code=ADMIN_ROLE_CODE).count()
        if admins <= 1:
            raise ValidationError({"detail": LAST_ADMIN_MSG})

    ClinicMembership.objects.filter(id=membership.id).revoke()

    AuditService.log(
        event_code="clinic.member_removed",
        entity_type="ClinicMembership",
        entity_id=membership.id,
        tenant_id=tenant_id,
        clinic_id=clinic_id,
        actor_user_id=actor_user_id,
        metadata={"user_id": user_id, "role": membership.role.code},
    )
    logger.info("User %s removed from clinic %s", user_id, clinic_id)


def deactivate_clinic_memberships(*, tenant_id: UUID, clinic_id: UUID) -> int:
    """Revoke every active membership of a clinic; returns how many were revoked."""
    return ClinicMembership.objects.filter(tenant_id=tenant_id, clinic_id=clinic_id).revoke()
