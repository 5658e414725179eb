# backend/cm_core/clinics/hierarchy.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rest_framework.exceptions import PermissionDenied, ValidationError

from cm_core.clinics.models import Clinic

logger = logging.getLogger(__name__)

MAIN_NOT_UNIQUE_MSG = "Only one Main Clinic is allowed per Tenant"
MAIN_HAS_PARENT_MSG = "Main Clinic must have parent_clinic_id = null"
SUB_WITHOUT_PARENT_MSG = "Sub Clinic must reference Main Clinic via parent_clinic_id"
INVALID_PARENT_MSG = "Parent clinic must be a valid Main Clinic in the same tenant"
MAIN_DELETION_MSG = "Cannot delete Main Clinic. It is the only clinic in the organization."
MAIN_DISABLE_MSG = "Cannot disable Main Clinic. It is the primary administrative clinic for your organization."
SUB_CANNOT_CREATE_MSG = "Sub Clinics are not allowed to create other clinics"


class ClinicHierarchyRules:
    """
    Read-only checks for the Main/Sub clinic tree.

    Every rule raises a DRF ValidationError (400) on failure and returns None on success.
    Callers mutate only after all rules pass, inside the same transaction.
    """

    @staticmethod
    def validate_hierarchy(*, is_main_clinic: bool, parent_clinic_id: Optional[UUID]) -> None:
        if is_main_clinic and parent_clinic_id is not None:
            raise ValidationError({"parent_clinic_id": MAIN_HAS_PARENT_MSG})
        if not is_main_clinic and parent_clinic_id is None:
            raise ValidationError({"parent_clinic_id": SUB_WITHOUT_PARENT_MSG})

    @staticmethod
    def validate_main_uniqueness(*, tenant_id: UUID, exclude_clinic_id: Optional[UUID] = None) -> None:
        qs = Clinic.objects.filter(tenant_id=tenant_id, is_main_clinic=True, is_active=True)
        if exclude_clinic_id is not None:
            qs = qs.exclude(id=exclude_clinic_id)
        if qs.exists():
            raise ValidationError({"is_main_clinic": MAIN_NOT_UNIQUE_MSG})

    @staticmethod
    def validate_parent_is_main(*, parent_clinic_id: UUID, tenant_id: UUID) -> None:
        ok = Clinic.objects.filter(
            id=parent_clinic_id,
            tenant_id=tenant_id,
            is_main_clinic=True,
            is_active=True,
        ).exists()
        if not ok:
            raise ValidationError({"parent_clinic_id": INVALID_PARENT_MSG})

    @staticmethod
    def validate_main_deletion(*, clinic: Clinic) -> None:
        if not clinic.is_main_clinic:
            return
        active_count = Clinic.objects.filter(tenant_id=clinic.tenant_id, is_active=True).count()
        if active_count == 1:
            raise ValidationError({"detail": MAIN_DELETION_MSG})

    @staticmethod
    def validate_main_status_change(*, is_main_clinic: bool, new_is_active: bool) -> None:
        if is_main_clinic and not new_is_active:
            raise ValidationError({"is_active": MAIN_DISABLE_MSG})

    @staticmethod
    def validate_clinic_business_rules(
        *,
        tenant_id: UUID,
        is_main_clinic: bool,
        parent_clinic_id: Optional[UUID],
        clinic_id: Optional[UUID] = None,
    ) -> None:
        """
        Hierarchy first, then uniqueness (Main) or parent validity (Sub). First failure wins.
        """
        ClinicHierarchyRules.validate_hierarchy(is_main_clinic=is_main_clinic, parent_clinic_id=parent_clinic_id)

        if is_main_clinic:
            ClinicHierarchyRules.validate_main_uniqueness(tenant_id=tenant_id, exclude_clinic_id=clinic_id)
        else:
            ClinicHierarchyRules.validate_parent_is_main(parent_clinic_id=parent_clinic_id, tenant_id=tenant_id)


@dataclass(frozen=True)
class Placement:
    is_main_clinic: bool
    parent_clinic_id: Optional[UUID]


def decide_placement(*, tenant_id: UUID, member_clinic_ids: list[UUID]) -> Placement:
    """
    Where does a newly created clinic go in the tree?

    Recomputed from current rows on every call (nothing is persisted about the decision):
      - tenant has no clinics                    -> Main
      - clinics exist but none is an active Main -> Main (repairs legacy data, logged)
      - requester belongs to the Main Clinic     -> Sub under Main
      - requester belongs only to Sub Clinics    -> 403
      - requester belongs to no clinic           -> Sub under Main
    """
    if not Clinic.objects.filter(tenant_id=tenant_id).exists():
        return Placement(is_main_clinic=True, parent_clinic_id=None)

    main = Clinic.objects.filter(tenant_id=tenant_id, is_main_clinic=True, is_active=True).first()
    if main is None:
        logger.warning("Tenant %s has clinics but no Main Clinic; promoting the new clinic to Main", tenant_id)
        return Placement(is_main_clinic=True, parent_clinic_id=None)

    if not member_clinic_ids or main.id in member_clinic_ids:
        return Placement(is_main_clinic=False, parent_clinic_id=main.id)

    raise PermissionDenied(SUB_CANNOT_CREATE_MSG)
