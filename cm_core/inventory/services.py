# backend/cm_core/inventory/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from cm_core.audit.services import AuditService
from cm_core.clinics.models import Clinic
from cm_core.common.api.exceptions import ConflictError
from cm_core.inventory.ledger import StockOperation, apply_stock_change, available_stock
from cm_core.inventory.models import (
    InventoryBranchWarehouse,
    InventoryItem,
    InventoryItemBranch,
    InventoryStock,
)
from cm_core.inventory.selectors import visible_items
from cm_core.warehouses.models import Warehouse
from cm_core.warehouses.selectors import find_warehouse, main_warehouse_for_branch

logger = logging.getLogger(__name__)

SKU_EXISTS_MSG = "SKU already exists"
WAREHOUSE_NOT_FOUND_MSG = "Warehouse not found"
BRANCH_NOT_FOUND_MSG = "Branch not found or does not belong to your tenant"
QUANTITY_MSG = "Quantity must be a positive number"
OVER_SUBTRACT_MSG = "Cannot subtract more than available stock. Available stock: {available}"
EXPIRY_MSG = "Expiry date must be in the future"
UNKNOWN_BRANCHES_MSG = "One or more branches not found or do not belong to your tenant"
UNKNOWN_WAREHOUSES_MSG = "One or more warehouses not found or do not belong to your tenant"

Pair = Tuple[UUID, UUID]  # (branch_id, warehouse_id)


class InsufficientStockError(ValidationError):
    """
    400 for an over-subtraction; available_stock and requested_quantity stay numeric.
    """

    def __init__(self, *, available: int, requested: int):
        super().__init__({"detail": OVER_SUBTRACT_MSG.format(available=available)})
        self.detail.update({"available_stock": available, "requested_quantity": requested})


@dataclass(frozen=True)
class ItemDetails:
    name: str
    category: str
    sku: str
    current_stock: int = 0
    minimum_stock: int = 1
    unit_price: Decimal = Decimal("0.00")
    supplier: str = ""
    description: str = ""
    expiry_date: Optional[date] = None


UPDATABLE_FIELDS = {
    "name",
    "category",
    "sku",
    "description",
    "minimum_stock",
    "unit_price",
    "supplier",
    "expiry_date",
}


def _validate_expiry(expiry_date: Optional[date]) -> None:
    if expiry_date is not None and expiry_date <= timezone.localdate():
        raise ValidationError({"expiry_date": EXPIRY_MSG})


def _resolve_branches(*, tenant_id: UUID, branch_ids: Iterable[UUID]) -> List[UUID]:
    ids = list(dict.fromkeys(branch_ids))
    if not ids:
        return []
    found = set(Clinic.objects.filter(tenant_id=tenant_id, id__in=ids).values_list("id", flat=True))
    if len(found) != len(ids):
        raise ValidationError({"assigned_branches": UNKNOWN_BRANCHES_MSG})
    return ids


def _resolve_pairs(*, tenant_id: UUID, pairs: Sequence[dict]) -> List[Tuple[UUID, Warehouse]]:
    """
    Explicit branch->warehouse mapping; duplicates collapse, soft-deleted warehouses are rejected.
    """
    unique: List[Pair] = list(dict.fromkeys((p["branch_id"], p["warehouse_id"]) for p in pairs))
    if not unique:
        return []

    _resolve_branches(tenant_id=tenant_id, branch_ids=[b for b, _ in unique])

    warehouse_ids = {w for _, w in unique}
    warehouses = {
        w.id: w for w in Warehouse.objects.alive().filter(tenant_id=tenant_id, id__in=warehouse_ids)
    }
    if len(warehouses) != len(warehouse_ids):
        raise ValidationError({"branch_warehouses": UNKNOWN_WAREHOUSES_MSG})

    return [(b, warehouses[w]) for b, w in unique]


def _infer_pairs(*, tenant_id: UUID, branch_ids: Iterable[UUID]) -> List[Tuple[UUID, Warehouse]]:
    pairs = []
    for branch_id in branch_ids:
        wh = main_warehouse_for_branch(tenant_id=tenant_id, branch_id=branch_id, active_only=True)
        if wh is not None:
            pairs.append((branch_id, wh))
    return pairs


def _replace_branch_links(item: InventoryItem, branch_ids: List[UUID]) -> None:
    InventoryItemBranch.objects.filter(item=item).delete()
    InventoryItemBranch.objects.bulk_create([InventoryItemBranch(item=item, branch_id=b) for b in branch_ids])


def _replace_warehouse_links(item: InventoryItem, pairs: List[Tuple[UUID, Warehouse]]) -> None:
    InventoryBranchWarehouse.objects.filter(item=item).delete()
    InventoryBranchWarehouse.objects.bulk_create(
        [InventoryBranchWarehouse(item=item, branch_id=b, warehouse=w) for b, w in pairs]
    )


class InventoryService:
    """
    Inventory write-model boundary: item CRUD and the stock pre-check in front of the ledger.
    """

    @staticmethod
    @transaction.atomic
    def create_item(
        *,
        tenant_id: UUID,
        clinic_id: UUID,
        actor_user_id: int | None,
        details: ItemDetails,
        assigned_branches: Optional[Iterable[UUID]] = None,
        branch_warehouses: Optional[Sequence[dict]] = None,
    ) -> InventoryItem:
        _validate_expiry(details.expiry_date)
        branch_ids = _resolve_branches(tenant_id=tenant_id, branch_ids=assigned_branches or [])

        if branch_warehouses:
            pairs = _resolve_pairs(tenant_id=tenant_id, pairs=branch_warehouses)
        else:
            pairs = _infer_pairs(tenant_id=tenant_id, branch_ids=branch_ids)

        try:
            with transaction.atomic():
                item = InventoryItem.objects.create(
                    tenant_id=tenant_id,
                    clinic_id=clinic_id,
                    name=details.name,
                    category=details.category,
                    sku=details.sku.upper(),
                    current_stock=details.current_stock,
                    minimum_stock=details.minimum_stock,
                    unit_price=details.unit_price,
                    supplier=details.supplier or "",
                    description=details.description or "",
                    expiry_date=details.expiry_date,
                )
        except IntegrityError:
            raise ConflictError(SKU_EXISTS_MSG)

        _replace_branch_links(item, branch_ids)
        _replace_warehouse_links(item, pairs)

        # every non-shared pair gets its own full copy of the opening stock
        InventoryStock.objects.bulk_create(
            [
                InventoryStock(item=item, branch_id=b, warehouse=w, stock=details.current_stock)
                for b, w in pairs
                if not w.is_shared
            ]
        )

        AuditService.log(
            event_code="inventory.item_created",
            entity_type="InventoryItem",
            entity_id=item.id,
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata={"sku": item.sku, "pairs": len(pairs)},
        )
        return item

    @staticmethod
    @transaction.atomic
    def update_item(
        *,
        tenant_id: UUID,
        clinic_id: UUID,
        actor_user_id: int | None,
        item_id: UUID,
        data: dict,
    ) -> InventoryItem:
        item = InventoryItem.objects.select_for_update().get(id=item_id, tenant_id=tenant_id, clinic_id=clinic_id)

        updates = {k: v for k, v in (data or {}).items() if k in UPDATABLE_FIELDS}
        if "expiry_date" in updates:
            _validate_expiry(updates["expiry_date"])
        if "sku" in updates:
            updates["sku"] = updates["sku"].upper()

        for k, v in updates.items():
            setattr(item, k, v)

        try:
            with transaction.atomic():
                item.save()
        except IntegrityError:
            raise ConflictError(SKU_EXISTS_MSG)

        if data.get("assigned_branches") is not None:
            _replace_branch_links(item, _resolve_branches(tenant_id=tenant_id, branch_ids=data["assigned_branches"]))
        if data.get("branch_warehouses") is not None:
            _replace_warehouse_links(item, _resolve_pairs(tenant_id=tenant_id, pairs=data["branch_warehouses"]))

        AuditService.log(
            event_code="inventory.item_updated",
            entity_type="InventoryItem",
            entity_id=item.id,
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return item

    @staticmethod
    @transaction.atomic
    def update_stock(
        *,
        tenant_id: UUID,
        clinic_id: UUID,
        actor_user_id: int | None,
        item_id: UUID,
        quantity: int,
        operation: str,
        branch_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> InventoryItem:
        if quantity is None or quantity <= 0:
            raise ValidationError({"quantity": QUANTITY_MSG})
        if operation not in StockOperation.values:
            raise ValidationError({"operation": "Operation must be add or subtract"})

        item = (
            InventoryItem.objects.select_for_update()
            .filter(id__in=visible_items(tenant_id=tenant_id, clinic_id=clinic_id).values("id"))
            .get(id=item_id)
        )

        warehouse = None
        scoped = branch_id is not None and warehouse_id is not None
        if scoped:
            if not Clinic.objects.filter(tenant_id=tenant_id, id=branch_id).exists():
                raise ValidationError({"detail": BRANCH_NOT_FOUND_MSG})
            warehouse = find_warehouse(tenant_id=tenant_id, warehouse_id=warehouse_id)

        if operation == StockOperation.SUBTRACT:
            if scoped and warehouse is None:
                raise ValidationError({"detail": WAREHOUSE_NOT_FOUND_MSG})

            available = available_stock(item, branch_id if scoped else None, warehouse)
            if quantity > available:
                raise InsufficientStockError(available=available, requested=quantity)

        apply_stock_change(item, quantity, operation, branch_id if scoped else None, warehouse)

        AuditService.log(
            event_code="inventory.stock_updated",
            entity_type="InventoryItem",
            entity_id=item.id,
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata={
                "operation": operation,
                "quantity": quantity,
                "branch_id": str(branch_id) if scoped else None,
                "warehouse_id": str(warehouse_id) if scoped else None,
            },
        )
        logger.info("Stock %s %s item=%s warehouse=%s", operation, quantity, item.id, warehouse_id if scoped else None)
        return item

    @staticmethod
    @transaction.atomic
    def delete_item(*, tenant_id: UUID, clinic_id: UUID, actor_user_id: int | None, item_id: UUID) -> None:
        item = InventoryItem.objects.get(id=item_id, tenant_id=tenant_id, clinic_id=clinic_id)
        sku = item.sku
        entity_id = item.id
        item.delete()

        AuditService.log(
            event_code="inventory.item_deleted",
            entity_type="InventoryItem",
            entity_id=entity_id,
            tenant_id=tenant_id,
            clinic_id=clinic_id,
            actor_user_id=actor_user_id,
            metadata={"sku": sku},
        )

