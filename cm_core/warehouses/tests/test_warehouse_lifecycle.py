import pytest
from rest_framework.exceptions import ValidationError

from cm_core.inventory.models import InventoryBranchWarehouse, InventoryItem
from cm_core.warehouses import events as ev
from cm_core.warehouses.models import Warehouse, WarehouseStatus, WarehouseType
from cm_core.warehouses.services import HAS_ITEMS_MSG, INVALID_STATUS_MSG, WarehouseUpdate

pytestmark = pytest.mark.django_db


def _item_in(warehouse, tenant, clinic):
    item = InventoryItem.objects.create(
        tenant_id=tenant.id,
        clinic_id=clinic.id,
        name="Gauze",
        category="consumables",
        sku="GAUZE-1",
        current_stock=10,
    )
    InventoryBranchWarehouse.objects.create(item=item, branch=clinic, warehouse=warehouse)
    return item


def test_delete_blocked_while_items_reference_warehouse(tenant, clinic, service, make_warehouse):
    wh = make_warehouse(clinic)
    _item_in(wh, tenant, clinic)

    with pytest.raises(ValidationError) as e:
        service.soft_delete(tenant_id=tenant.id, warehouse_id=wh.id)
    assert str(e.value.detail["detail"]) == HAS_ITEMS_MSG

    wh.refresh_from_db()
    assert wh.deleted_at is None


def test_soft_delete_marks_inactive_and_hides_row(tenant, clinic, service, make_warehouse):
    wh = make_warehouse(clinic, type=WarehouseType.SUB)
    service.soft_delete(tenant_id=tenant.id, warehouse_id=wh.id)

    wh.refresh_from_db()
    assert wh.status == WarehouseStatus.INACTIVE
    assert not Warehouse.objects.alive().filter(id=wh.id).exists()

    with pytest.raises(Warehouse.DoesNotExist):
        service.soft_delete(tenant_id=tenant.id, warehouse_id=wh.id)


def test_set_status(tenant, clinic, service, make_warehouse):
    wh = make_warehouse(clinic)

    wh = service.set_status(tenant_id=tenant.id, warehouse_id=wh.id, status=WarehouseStatus.INACTIVE)
    assert wh.status == WarehouseStatus.INACTIVE

    with pytest.raises(ValidationError) as e:
        service.set_status(tenant_id=tenant.id, warehouse_id=wh.id, status="ARCHIVED")
    assert str(e.value.detail["status"]) == INVALID_STATUS_MSG


def test_inactive_main_still_holds_the_slot(tenant, clinic, service, make_warehouse):
    wh = make_warehouse(clinic)
    service.set_status(tenant_id=tenant.id, warehouse_id=wh.id, status=WarehouseStatus.INACTIVE)

    with pytest.raises(ValidationError):
        make_warehouse(clinic, name="Second main")


def test_events_follow_mutations(tenant, clinic, make_branch, service, make_warehouse, recorded):
    wh = make_warehouse(clinic)
    assert [e.type for e in recorded] == [ev.WAREHOUSE_CREATED]
    assert recorded[0].warehouse_id == wh.id
    assert recorded[0].tenant_id == tenant.id
    assert recorded[0].warehouse["assigned_branches"] == [str(clinic.id)]

    other = make_branch()
    service.update(
        tenant_id=tenant.id,
        warehouse_id=wh.id,
        patch=WarehouseUpdate(assigned_branches=[clinic.id, other.id], status=WarehouseStatus.INACTIVE),
    )
    assert [e.type for e in recorded[1:]] == [
        ev.WAREHOUSE_UPDATED,
        ev.WAREHOUSE_BRANCHES_ASSIGNED,
        ev.WAREHOUSE_STATUS_CHANGED,
    ]

    service.soft_delete(tenant_id=tenant.id, warehouse_id=wh.id)
    assert recorded[-1].type == ev.WAREHOUSE_DELETED
    assert recorded[-1].warehouse["deleted_at"] is not None


def test_failed_mutation_emits_nothing(clinic, make_warehouse, recorded):
    make_warehouse(clinic)
    with pytest.raises(ValidationError):
        make_warehouse(clinic, name="Dup")
    assert len(recorded) == 1


def test_failing_listener_does_not_break_mutation(tenant, clinic, bus, make_warehouse):
    def broken(event):
        raise RuntimeError("listener down")

    seen = []
    bus.on(ev.WAREHOUSE_CREATED, broken)
    bus.on(ev.WAREHOUSE_CREATED, seen.append)

    wh = make_warehouse(clinic)
    assert Warehouse.objects.filter(id=wh.id).exists()
    assert len(seen) == 1


def test_unsubscribe_and_unknown_event_type(bus, clinic, make_warehouse):
    seen = []
    off = bus.on(ev.WAREHOUSE_CREATED, seen.append)
    off()
    make_warehouse(clinic)
    assert seen == []

    with pytest.raises(ValueError):
        bus.on("warehouse.exploded", seen.append)
