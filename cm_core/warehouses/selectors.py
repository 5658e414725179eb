# backend/cm_core/warehouses/selectors.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db.models import Count, Q, QuerySet

from cm_core.warehouses.models import Warehouse, WarehouseStatus


def warehouses_for_tenant(*, tenant_id: UUID) -> QuerySet[Warehouse]:
    """
    Alive warehouses of a tenant with item_count (distinct items mapped to each warehouse).
    """
    return (
        Warehouse.objects.alive()
        .filter(tenant_id=tenant_id)
        .prefetch_related("branch_links__branch")
        .annotate(item_count=Count("item_links__item", distinct=True))
        .order_by("-created_at")
    )


def warehouse_by_id(*, tenant_id: UUID, warehouse_id: UUID) -> Warehouse:
    return Warehouse.objects.alive().prefetch_related("branch_links__branch").get(id=warehouse_id, tenant_id=tenant_id)


def find_warehouse(*, tenant_id: UUID, warehouse_id: UUID) -> Optional[Warehouse]:
    """
    Any warehouse of the tenant, soft-deleted included (stock ledger lookups).
    """
    return Warehouse.objects.filter(id=warehouse_id, tenant_id=tenant_id).first()


def main_warehouse_for_branch(
    *,
    tenant_id: UUID,
    branch_id: UUID,
    active_only: bool = False,
    exclude_warehouse_id: Optional[UUID] = None,
) -> Optional[Warehouse]:
    qs = Warehouse.objects.alive().mains().filter(tenant_id=tenant_id).for_branch(branch_id)
    if active_only:
        qs = qs.filter(status=WarehouseStatus.ACTIVE)
    if exclude_warehouse_id is not None:
        qs = qs.exclude(id=exclude_warehouse_id)
    return qs.order_by("created_at").first()


def warehouse_has_items(*, warehouse_id: UUID) -> bool:
    from cm_core.inventory.models import InventoryItem

    return InventoryItem.objects.filter(
        Q(branch_warehouse_links__warehouse_id=warehouse_id) | Q(stock_entries__warehouse_id=warehouse_id)
    ).exists()


def items_in_warehouse(*, tenant_id: UUID, warehouse_id: UUID, q: str | None = None):
    from cm_core.inventory.models import InventoryItem

    qs = InventoryItem.objects.filter(tenant_id=tenant_id, branch_warehouse_links__warehouse_id=warehouse_id)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(Q(name__icontains=qv) | Q(sku__icontains=qv) | Q(supplier__icontains=qv))

    return qs.distinct().order_by("-created_at")
