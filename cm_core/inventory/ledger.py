# backend/cm_core/inventory/ledger.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from django.db import models

from cm_core.inventory.models import InventoryItem, InventoryStock
from cm_core.warehouses.models import Warehouse


class StockOperation(models.TextChoices):
    ADD = "add", "Add"
    SUBTRACT = "subtract", "Subtract"


def _adjust(value: int, quantity: int, operation: str) -> int:
    if operation == StockOperation.ADD:
        return value + quantity
    return max(0, value - quantity)


def _uses_pooled_counter(branch_id: Optional[UUID], warehouse: Optional[Warehouse]) -> bool:
    return branch_id is None or warehouse is None or warehouse.is_shared


def stock_entry(item: InventoryItem, branch_id: UUID, warehouse: Warehouse) -> Optional[InventoryStock]:
    return InventoryStock.objects.filter(item=item, branch_id=branch_id, warehouse=warehouse).first()


def available_stock(item: InventoryItem, branch_id: Optional[UUID], warehouse: Optional[Warehouse]) -> int:
    """
    Quantity a subtract may consume in the given scope.

    Shared warehouse (or no scope): the pooled current_stock.
    Non-shared: the (branch, warehouse) entry, or current_stock when no entry exists yet.
    """
    if _uses_pooled_counter(branch_id, warehouse):
        return item.current_stock

    entry = stock_entry(item, branch_id, warehouse)
    if entry is not None:
        return entry.stock
    return item.current_stock


def apply_stock_change(
    item: InventoryItem,
    quantity: int,
    operation: str,
    branch_id: Optional[UUID] = None,
    warehouse: Optional[Warehouse] = None,
) -> InventoryItem:
    """
    Apply one add/subtract to the right counter. Counters floor at zero.

    Non-shared rows are independent per (branch, warehouse): a new row starts at the added
    quantity and never inherits another branch's stock. The only exception is the first
    row ever written for an item on a subtract, which takes current_stock as its baseline.
    current_stock is not recomputed from the rows.

    Callers must run the available_stock pre-check first; this function silently floors.
    """
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    if operation not in StockOperation.values:
        raise ValueError(f"Unknown stock operation: {operation}")

    if _uses_pooled_counter(branch_id, warehouse):
        item.current_stock = _adjust(item.current_stock, quantity, operation)
        item.save(update_fields=["current_stock", "updated_at"])
        return item

    entry = stock_entry(item, branch_id, warehouse)
    if entry is not None:
        entry.stock = _adjust(entry.stock, quantity, operation)
        entry.save(update_fields=["stock", "updated_at"])
        return item

    if operation == StockOperation.ADD:
        stock = quantity
    elif not item.stock_entries.exists() and item.current_stock > 0:
        stock = max(0, item.current_stock - quantity)
    else:
        stock = 0

    InventoryStock.objects.create(item=item, branch_id=branch_id, warehouse=warehouse, stock=stock)
    return item
