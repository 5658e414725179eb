import pytest

from cm_core.inventory.services import InventoryService, ItemDetails
from cm_core.warehouses.models import WarehouseType
from cm_core.warehouses.services import WarehouseService


@pytest.fixture
def branch_b(make_branch):
    return make_branch("Branch B")


@pytest.fixture
def warehouses(tenant, clinic, branch_b):
    """
    One non-shared MAIN per branch plus a shared SUB serving both.
    """
    svc = WarehouseService()
    return {
        "a": svc.create(tenant_id=tenant.id, name="A main", type=WarehouseType.MAIN, assigned_branches=[clinic.id]),
        "b": svc.create(tenant_id=tenant.id, name="B main", type=WarehouseType.MAIN, assigned_branches=[branch_b.id]),
        "shared": svc.create(
            tenant_id=tenant.id,
            name="Shared store",
            type=WarehouseType.SUB,
            assigned_branches=[clinic.id, branch_b.id],
            is_shared=True,
        ),
    }


@pytest.fixture
def make_item(tenant, clinic, user):
    def _make(sku="ITEM-1", current_stock=100, **kwargs):
        details = ItemDetails(
            name=kwargs.pop("name", f"Item {sku}"),
            category=kwargs.pop("category", "medications"),
            sku=sku,
            current_stock=current_stock,
            minimum_stock=kwargs.pop("minimum_stock", 1),
            unit_price=kwargs.pop("unit_price", 0),
            expiry_date=kwargs.pop("expiry_date", None),
        )
        return InventoryService.create_item(
            tenant_id=tenant.id,
            clinic_id=kwargs.pop("clinic_id", clinic.id),
            actor_user_id=user.id,
            details=details,
            **kwargs,
        )

    return _make
