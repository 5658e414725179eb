# backend/cm_core/inventory/selectors.py
from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from django.conf import settings
from django.db.models import Count, DecimalField, ExpressionWrapper, F, Q, QuerySet, Sum, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from cm_core.inventory.models import InventoryItem

STOCK_STATUS_LOW = "low_stock"
STOCK_STATUS_OUT = "out_of_stock"

_VALUE_EXPR = ExpressionWrapper(F("current_stock") * F("unit_price"), output_field=DecimalField(max_digits=18, decimal_places=2))


def _with_relations(qs: QuerySet[InventoryItem]) -> QuerySet[InventoryItem]:
    return qs.prefetch_related("branch_links", "branch_warehouse_links", "stock_entries")


def owned_items(*, tenant_id: UUID, clinic_id: UUID) -> QuerySet[InventoryItem]:
    return InventoryItem.objects.filter(tenant_id=tenant_id, clinic_id=clinic_id)


def get_owned_item(*, tenant_id: UUID, clinic_id: UUID, item_id: UUID) -> InventoryItem:
    return _with_relations(owned_items(tenant_id=tenant_id, clinic_id=clinic_id)).get(id=item_id)


def visible_items(*, tenant_id: UUID, clinic_id: UUID) -> QuerySet[InventoryItem]:
    """
    Items the clinic owns or has been assigned to.
    """
    return (
        InventoryItem.objects.filter(tenant_id=tenant_id)
        .filter(Q(clinic_id=clinic_id) | Q(branch_links__branch_id=clinic_id))
        .distinct()
    )


def get_visible_item(*, tenant_id: UUID, clinic_id: UUID, item_id: UUID) -> InventoryItem:
    return _with_relations(visible_items(tenant_id=tenant_id, clinic_id=clinic_id)).get(id=item_id)


def search_items(
    *,
    tenant_id: UUID,
    clinic_id: UUID,
    category: str | None = None,
    stock_status: str | None = None,
    branch_id: UUID | None = None,
    q: str | None = None,
) -> QuerySet[InventoryItem]:
    qs = visible_items(tenant_id=tenant_id, clinic_id=clinic_id)

    if category:
        qs = qs.filter(category=category)

    if stock_status == STOCK_STATUS_LOW:
        qs = qs.filter(current_stock__lte=F("minimum_stock"))
    elif stock_status == STOCK_STATUS_OUT:
        qs = qs.filter(current_stock=0)

    if branch_id:
        qs = qs.filter(branch_links__branch_id=branch_id)

    qv = (q or "").strip()
    if qv:
        qs = qs.filter(Q(name__icontains=qv) | Q(sku__icontains=qv) | Q(supplier__icontains=qv))

    return _with_relations(qs).order_by("-created_at")


def low_stock_items(*, tenant_id: UUID, clinic_id: UUID) -> QuerySet[InventoryItem]:
    return (
        owned_items(tenant_id=tenant_id, clinic_id=clinic_id)
        .filter(current_stock__lte=F("minimum_stock"))
        .order_by("-current_stock", "name")
    )


def expired_items(*, tenant_id: UUID, clinic_id: UUID) -> QuerySet[InventoryItem]:
    today = timezone.localdate()
    return owned_items(tenant_id=tenant_id, clinic_id=clinic_id).filter(expiry_date__lte=today).order_by("expiry_date")


def expiring_items(*, tenant_id: UUID, clinic_id: UUID, days: int | None = None) -> QuerySet[InventoryItem]:
    if days is None:
        days = getattr(settings, "CM_EXPIRING_ITEMS_DAYS", 30)
    today = timezone.localdate()
    return (
        owned_items(tenant_id=tenant_id, clinic_id=clinic_id)
        .filter(expiry_date__gte=today, expiry_date__lte=today + timedelta(days=days))
        .order_by("expiry_date")
    )


def inventory_stats(*, tenant_id: UUID, clinic_id: UUID) -> Dict[str, Any]:
    qs = owned_items(tenant_id=tenant_id, clinic_id=clinic_id)
    zero = Value(Decimal("0.00"), output_field=DecimalField(max_digits=18, decimal_places=2))

    totals = qs.aggregate(
        total_items=Count("id"),
        low_stock_items=Count("id", filter=Q(current_stock__lte=F("minimum_stock"))),
        out_of_stock_items=Count("id", filter=Q(current_stock=0)),
        expired_items=Count("id", filter=Q(expiry_date__lte=timezone.localdate())),
        total_value=Coalesce(Sum(_VALUE_EXPR), zero),
    )

    categories = (
        qs.values("category")
        .annotate(count=Count("id"), total_value=Coalesce(Sum(_VALUE_EXPR), zero))
        .order_by("-count", "category")
    )

    totals["category_stats"] = [
        {"category": row["category"], "count": row["count"], "total_value": row["total_value"]}
        for row in categories
    ]
    return totals
