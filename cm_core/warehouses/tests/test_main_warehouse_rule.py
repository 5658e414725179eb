import pytest
from rest_framework.exceptions import ValidationError

from cm_core.warehouses.models import Warehouse, WarehouseBranch, WarehouseType
from cm_core.warehouses.services import (
    DUPLICATE_BRANCHES_MSG,
    DUPLICATE_MAIN_MSG,
    NO_BRANCHES_MSG,
    UNKNOWN_BRANCHES_MSG,
    WarehouseUpdate,
)

pytestmark = pytest.mark.django_db


def test_create_main_links_branches(tenant, clinic, make_branch, make_warehouse):
    sub = make_branch()
    wh = make_warehouse(clinic, sub, name="Central")

    assert wh.type == WarehouseType.MAIN
    assert set(WarehouseBranch.objects.filter(warehouse=wh).values_list("branch_id", flat=True)) == {clinic.id, sub.id}


def test_second_main_for_branch_is_rejected(tenant, clinic, make_warehouse):
    first = make_warehouse(clinic)

    with pytest.raises(ValidationError) as e:
        make_warehouse(clinic, name="Another main")

    detail = e.value.detail
    assert str(detail["detail"]) == DUPLICATE_MAIN_MSG.format(branch_id=clinic.id)
    assert str(detail["branch_id"]) == str(clinic.id)
    assert str(detail["existing_warehouse_id"]) == str(first.id)
    assert Warehouse.objects.filter(tenant_id=tenant.id).count() == 1


def test_main_over_several_branches_rejected_if_any_is_taken(tenant, clinic, make_branch, make_warehouse):
    free = make_branch()
    taken = make_branch()
    make_warehouse(taken)

    with pytest.raises(ValidationError) as e:
        make_warehouse(free, taken, name="Wide main")
    assert str(e.value.detail["branch_id"]) == str(taken.id)

    # nothing written for the free branch either
    assert not Warehouse.objects.filter(branch_links__branch_id=free.id).exists()


def test_sub_warehouses_are_unlimited(clinic, make_warehouse):
    make_warehouse(clinic)
    make_warehouse(clinic, type=WarehouseType.SUB, name="Cold room")
    make_warehouse(clinic, type=WarehouseType.SUB, name="Back shelf")

    assert Warehouse.objects.alive().filter(branch_links__branch_id=clinic.id).count() == 3


def test_soft_deleted_main_frees_the_slot(tenant, clinic, service, make_warehouse):
    old = make_warehouse(clinic)
    service.soft_delete(tenant_id=tenant.id, warehouse_id=old.id)

    new = make_warehouse(clinic, name="Replacement")
    assert new.id != old.id

    old.refresh_from_db()
    assert old.deleted_at is not None


def test_promoting_sub_to_main_respects_rule(tenant, clinic, make_branch, service, make_warehouse):
    main = make_warehouse(clinic)
    sub = make_warehouse(clinic, type=WarehouseType.SUB, name="Side store")

    with pytest.raises(ValidationError) as e:
        service.update(tenant_id=tenant.id, warehouse_id=sub.id, patch=WarehouseUpdate(type=WarehouseType.MAIN))
    assert str(e.value.detail["existing_warehouse_id"]) == str(main.id)

    # a MAIN may be edited without tripping over itself
    other = make_branch()
    updated = service.update(
        tenant_id=tenant.id,
        warehouse_id=main.id,
        patch=WarehouseUpdate(name="Central", assigned_branches=[clinic.id, other.id]),
    )
    assert updated.name == "Central"
    assert set(updated.branch_ids) == {clinic.id, other.id}


def test_moving_main_onto_taken_branch_is_rejected(tenant, clinic, make_branch, service, make_warehouse):
    other = make_branch()
    a = make_warehouse(clinic)
    b = make_warehouse(other)

    with pytest.raises(ValidationError) as e:
        service.update(tenant_id=tenant.id, warehouse_id=a.id, patch=WarehouseUpdate(assigned_branches=[other.id]))
    assert str(e.value.detail["existing_warehouse_id"]) == str(b.id)


@pytest.mark.parametrize(
    "branches, message",
    [
        ([], NO_BRANCHES_MSG),
        (["00000000-0000-0000-0000-0000000000aa"], UNKNOWN_BRANCHES_MSG),
    ],
)
def test_branch_list_validation(tenant, service, branches, message):
    with pytest.raises(ValidationError) as e:
        service.create(tenant_id=tenant.id, name="Store", type=WarehouseType.SUB, assigned_branches=branches)
    assert str(e.value.detail["assigned_branches"]) == message


def test_duplicate_branch_ids_rejected(tenant, clinic, service):
    with pytest.raises(ValidationError) as e:
        service.create(tenant_id=tenant.id, name="Store", type=WarehouseType.SUB, assigned_branches=[clinic.id, clinic.id])
    assert str(e.value.detail["assigned_branches"]) == DUPLICATE_BRANCHES_MSG


def test_other_tenant_branch_is_unknown(tenant, other_clinic, service):
    with pytest.raises(ValidationError) as e:
        service.create(tenant_id=tenant.id, name="Store", type=WarehouseType.SUB, assigned_branches=[other_clinic.id])
    assert str(e.value.detail["assigned_branches"]) == UNKNOWN_BRANCHES_MSG
