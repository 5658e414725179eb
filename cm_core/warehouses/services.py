# backend/cm_core/warehouses/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional
from uuid import UUID

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from cm_core.audit.services import AuditService
from cm_core.clinics.models import Clinic
from cm_core.warehouses import events as ev
from cm_core.warehouses.events import WarehouseEventBus
from cm_core.warehouses.models import Warehouse, WarehouseBranch, WarehouseStatus, WarehouseType
from cm_core.warehouses.selectors import main_warehouse_for_branch, warehouse_has_items

logger = logging.getLogger(__name__)

NO_BRANCHES_MSG = "At least one branch must be assigned"
DUPLICATE_BRANCHES_MSG = "Duplicate branch IDs detected in assigned branches"
UNKNOWN_BRANCHES_MSG = "One or more branches not found or do not belong to your tenant"
UNSET = object()  # WarehouseUpdate field left out of the patch

DUPLICATE_MAIN_MSG = "Branch {branch_id} already has a MAIN warehouse. Each branch can have exactly ONE MAIN warehouse."
INVALID_STATUS_MSG = "Status must be ACTIVE or INACTIVE"
HAS_ITEMS_MSG = (
    "Cannot delete warehouse. There are items assigned to this warehouse. "
    "Please remove or reassign all items before deleting."
)


@dataclass(frozen=True)
class WarehouseUpdate:
    name: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    is_shared: Optional[bool] = None
    # None clears the manager; UNSET leaves it unchanged
    manager_user_id: Any = UNSET
    assigned_branches: Optional[List[UUID]] = None


class WarehouseService:
    """
    Warehouse write-model boundary.

    The MAIN-per-branch rule is a check-then-write: the branch clinic rows are locked
    (SELECT ... FOR UPDATE, ordered by id) before looking for an existing MAIN warehouse,
    so two creators racing for the same branch serialize and the loser sees the winner's row.
    Events go to the injected bus after the atomic block has completed.
    """

    def __init__(self, *, events: Optional[WarehouseEventBus] = None):
        self.events = events if events is not None else WarehouseEventBus()

    # -------------------------
    # validation helpers
    # -------------------------
    @staticmethod
    def _normalize_branch_ids(assigned_branches: Optional[Iterable]) -> List[UUID]:
        raw = list(assigned_branches or [])
        if not raw:
            raise ValidationError({"assigned_branches": NO_BRANCHES_MSG})

        try:
            ids = [UUID(str(b)) for b in raw]
        except ValueError:
            raise ValidationError({"assigned_branches": UNKNOWN_BRANCHES_MSG})

        if len(set(ids)) != len(ids):
            raise ValidationError({"assigned_branches": DUPLICATE_BRANCHES_MSG})
        return ids

    @staticmethod
    def _lock_branches(*, tenant_id: UUID, branch_ids: List[UUID]) -> List[Clinic]:
        branches = list(
            Clinic.objects.select_for_update().filter(tenant_id=tenant_id, id__in=branch_ids).order_by("id")
        )
        if len(branches) != len(branch_ids):
            raise ValidationError({"assigned_branches": UNKNOWN_BRANCHES_MSG})
        return branches

    @staticmethod
    def _ensure_main_slots_free(
        *, tenant_id: UUID, branch_ids: List[UUID], exclude_warehouse_id: Optional[UUID] = None
    ) -> None:
        for branch_id in branch_ids:
            existing = main_warehouse_for_branch(
                tenant_id=tenant_id,
                branch_id=branch_id,
                exclude_warehouse_id=exclude_warehouse_id,
            )
            if existing is not None:
                raise ValidationError(
                    {
                        "detail": DUPLICATE_MAIN_MSG.format(branch_id=branch_id),
                        "branch_id": str(branch_id),
                        "existing_warehouse_id": str(existing.id),
                    }
                )

    @staticmethod
    def _validate_manager(manager_user_id: Optional[int]) -> None:
        if manager_user_id is None:
            return
        if not get_user_model().objects.filter(id=manager_user_id).exists():
            raise ValidationError({"manager_user_id": "Manager user not found."})

    @staticmethod
    def _validate_name(name: str) -> str:
        name = (name or "").strip()
        if len(name) < 2 or len(name) > 200:
            raise ValidationError({"name": "Warehouse name must be 2-200 characters."})
        return name

    # -------------------------
    # commands
    # -------------------------
    def create(
        self,
        *,
        tenant_id: UUID,
        name: str,
        type: str,
        assigned_branches: Iterable,
        status: str = WarehouseStatus.ACTIVE,
        manager_user_id: Optional[int] = None,
        is_shared: bool = False,
        actor_user_id: Optional[int] = None,
        clinic_id: Optional[UUID] = None,
    ) -> Warehouse:
        name = self._validate_name(name)
        if type not in WarehouseType.values:
            raise ValidationError({"type": "Type must be MAIN or SUB"})
        if status not in WarehouseStatus.values:
            raise ValidationError({"status": INVALID_STATUS_MSG})
        branch_ids = self._normalize_branch_ids(assigned_branches)
        self._validate_manager(manager_user_id)

        with transaction.atomic():
            self._lock_branches(tenant_id=tenant_id, branch_ids=branch_ids)
            if type == WarehouseType.MAIN:
                self._ensure_main_slots_free(tenant_id=tenant_id, branch_ids=branch_ids)

            wh = Warehouse.objects.create(
                tenant_id=tenant_id,
                name=name,
                type=type,
                status=status,
                is_shared=bool(is_shared),
                manager_user_id=manager_user_id,
            )
            WarehouseBranch.objects.bulk_create(
                [WarehouseBranch(warehouse=wh, branch_id=b, tenant_id=tenant_id) for b in branch_ids]
            )

            AuditService.log(
                event_code="warehouse.created",
                entity_type="Warehouse",
                entity_id=wh.id,
                tenant_id=tenant_id,
                clinic_id=clinic_id,
                actor_user_id=actor_user_id,
                metadata={"type": type, "branches": [str(b) for b in branch_ids]},
            )

        logger.info("Warehouse created id=%s type=%s tenant=%s branches=%s", wh.id, wh.type, tenant_id, len(branch_ids))
        self.events.emit(ev.WAREHOUSE_CREATED, wh, tenant_id)
        return wh

    def update(
        self,
        *,
        tenant_id: UUID,
        warehouse_id: UUID,
        patch: WarehouseUpdate,
        actor_user_id: Optional[int] = None,
        clinic_id: Optional[UUID] = None,
    ) -> Warehouse:
        if patch.type is not None and patch.type not in WarehouseType.values:
            raise ValidationError({"type": "Type must be MAIN or SUB"})
        if patch.status is not None and patch.status not in WarehouseStatus.values:
            raise ValidationError({"status": INVALID_STATUS_MSG})
        new_branch_ids = None
        if patch.assigned_branches is not None:
            new_branch_ids = self._normalize_branch_ids(patch.assigned_branches)
        if patch.manager_user_id is not UNSET:
            self._validate_manager(patch.manager_user_id)

        with transaction.atomic():
            wh = Warehouse.objects.alive().select_for_update().get(id=warehouse_id, tenant_id=tenant_id)
            current_ids = list(wh.branch_links.values_list("branch_id", flat=True))

            resulting_type = patch.type or wh.type
            resulting_ids = new_branch_ids if new_branch_ids is not None else current_ids

            if new_branch_ids is not None or (resulting_type == WarehouseType.MAIN and patch.type is not None):
                self._lock_branches(tenant_id=tenant_id, branch_ids=resulting_ids)

            if resulting_type == WarehouseType.MAIN and (patch.type is not None or new_branch_ids is not None):
                self._ensure_main_slots_free(
                    tenant_id=tenant_id,
                    branch_ids=resulting_ids,
                    exclude_warehouse_id=wh.id,
                )

            old_status = wh.status
            if patch.name is not None:
                wh.name = self._validate_name(patch.name)
            mapping = {
                "type": patch.type,
                "status": patch.status,
                "is_shared": patch.is_shared,
            }
            for field, value in mapping.items():
                if value is not None:
                    setattr(wh, field, value)
            if patch.manager_user_id is not UNSET:
                wh.manager_user_id = patch.manager_user_id
            wh.save()

            branches_changed = new_branch_ids is not None and set(new_branch_ids) != set(current_ids)
            if branches_changed:
                WarehouseBranch.objects.filter(warehouse=wh).exclude(branch_id__in=new_branch_ids).delete()
                WarehouseBranch.objects.bulk_create(
                    [
                        WarehouseBranch(warehouse=wh, branch_id=b, tenant_id=tenant_id)
                        for b in new_branch_ids
                        if b not in current_ids
                    ]
                )

            AuditService.log(
                event_code="warehouse.updated",
                entity_type="Warehouse",
                entity_id=wh.id,
                tenant_id=tenant_id,
                clinic_id=clinic_id,
                actor_user_id=actor_user_id,
                metadata={"branches_changed": branches_changed},
            )

        self.events.emit(ev.WAREHOUSE_UPDATED, wh, tenant_id)
        if branches_changed:
            self.events.emit(ev.WAREHOUSE_BRANCHES_ASSIGNED, wh, tenant_id)
        if wh.status != old_status:
            self.events.emit(ev.WAREHOUSE_STATUS_CHANGED, wh, tenant_id)
        return wh

    def set_status(
        self,
        *,
        tenant_id: UUID,
        warehouse_id: UUID,
        status: str,
        actor_user_id: Optional[int] = None,
        clinic_id: Optional[UUID] = None,
    ) -> Warehouse:
        if status not in WarehouseStatus.values:
            raise ValidationError({"status": INVALID_STATUS_MSG})

        with transaction.atomic():
            wh = Warehouse.objects.alive().select_for_update().get(id=warehouse_id, tenant_id=tenant_id)
            if wh.status == status:
                return wh
            wh.status = status
            wh.save(update_fields=["status", "updated_at"])

            AuditService.log(
                event_code="warehouse.status_changed",
                entity_type="Warehouse",
                entity_id=wh.id,
                tenant_id=tenant_id,
                clinic_id=clinic_id,
                actor_user_id=actor_user_id,
                metadata={"status": status},
            )

        self.events.emit(ev.WAREHOUSE_STATUS_CHANGED, wh, tenant_id)
        return wh

    def soft_delete(
        self,
        *,
        tenant_id: UUID,
        warehouse_id: UUID,
        actor_user_id: Optional[int] = None,
        clinic_id: Optional[UUID] = None,
    ) -> Warehouse:
        with transaction.atomic():
            wh = Warehouse.objects.alive().select_for_update().get(id=warehouse_id, tenant_id=tenant_id)

            if warehouse_has_items(warehouse_id=wh.id):
                raise ValidationError({"detail": HAS_ITEMS_MSG})

            wh.deleted_at = timezone.now()
            wh.status = WarehouseStatus.INACTIVE
            wh.save(update_fields=["deleted_at", "status", "updated_at"])

            AuditService.log(
                event_code="warehouse.deleted",
                entity_type="Warehouse",
                entity_id=wh.id,
                tenant_id=tenant_id,
                clinic_id=clinic_id,
                actor_user_id=actor_user_id,
            )

        logger.info("Warehouse soft-deleted id=%s tenant=%s", wh.id, tenant_id)
        self.events.emit(ev.WAREHOUSE_DELETED, wh, tenant_id)
        return wh
