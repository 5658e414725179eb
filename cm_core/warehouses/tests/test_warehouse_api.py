import pytest

from cm_core.tests.helpers import scoped
from cm_core.warehouses.models import Warehouse, WarehouseStatus, WarehouseType
from cm_core.warehouses.services import DUPLICATE_MAIN_MSG, HAS_ITEMS_MSG

pytestmark = pytest.mark.django_db


def _create(api_client, tenant, clinic, **body):
    payload = {"name": "Main store", "type": "MAIN", "assigned_branches": [str(clinic.id)]}
    payload.update(body)
    return api_client.post("/api/v1/warehouses/", payload, format="json", **scoped(tenant, clinic))


def test_create_and_retrieve(api_client, tenant, clinic):
    r = _create(api_client, tenant, clinic)
    assert r.status_code == 201, r.data
    assert r.data["type"] == "MAIN"
    assert r.data["status"] == "ACTIVE"
    assert r.data["is_shared"] is False
    assert [b["id"] for b in r.data["assigned_branches"]] == [str(clinic.id)]
    assert r.data["item_count"] == 0

    g = api_client.get(f"/api/v1/warehouses/{r.data['id']}/", **scoped(tenant, clinic))
    assert g.status_code == 200
    assert g.data["name"] == "Main store"


def test_duplicate_main_returns_existing_warehouse(api_client, tenant, clinic):
    first = _create(api_client, tenant, clinic)
    assert first.status_code == 201

    r = _create(api_client, tenant, clinic, name="Second main")
    assert r.status_code == 400, r.data
    err = r.data["error"]
    assert err["code"] == "validation_error"
    assert err["message"] == DUPLICATE_MAIN_MSG.format(branch_id=clinic.id)
    assert err["details"]["branch_id"] == str(clinic.id)
    assert err["details"]["existing_warehouse_id"] == first.data["id"]


def test_empty_branch_list_rejected(api_client, tenant, clinic):
    r = _create(api_client, tenant, clinic, assigned_branches=[])
    assert r.status_code == 400
    assert r.data["error"]["details"]["assigned_branches"] == "At least one branch must be assigned"


def test_list_defaults_to_current_branch(api_client, tenant, clinic, make_branch):
    sub = make_branch()
    mine = _create(api_client, tenant, clinic).data
    theirs = _create(api_client, tenant, clinic, name="Sub store", assigned_branches=[str(sub.id)]).data

    r = api_client.get("/api/v1/warehouses/", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert [w["id"] for w in r.data["results"]] == [mine["id"]]

    r = api_client.get("/api/v1/warehouses/", {"branch_id": str(sub.id)}, **scoped(tenant, clinic))
    assert [w["id"] for w in r.data["results"]] == [theirs["id"]]


def test_list_filters(api_client, tenant, clinic):
    _create(api_client, tenant, clinic, name="Pharmacy main")
    _create(api_client, tenant, clinic, name="Cold storage", type="SUB", is_shared=True)

    r = api_client.get("/api/v1/warehouses/", {"type": "SUB"}, **scoped(tenant, clinic))
    assert [w["name"] for w in r.data["results"]] == ["Cold storage"]

    r = api_client.get("/api/v1/warehouses/", {"search": "pharm"}, **scoped(tenant, clinic))
    assert [w["name"] for w in r.data["results"]] == ["Pharmacy main"]

    r = api_client.get("/api/v1/warehouses/", {"ordering": "name"}, **scoped(tenant, clinic))
    assert [w["name"] for w in r.data["results"]] == ["Cold storage", "Pharmacy main"]


def test_status_endpoint(api_client, tenant, clinic):
    wh = _create(api_client, tenant, clinic).data

    r = api_client.patch(f"/api/v1/warehouses/{wh['id']}/status/", {"status": "INACTIVE"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["status"] == WarehouseStatus.INACTIVE

    r = api_client.patch(f"/api/v1/warehouses/{wh['id']}/status/", {"status": "BROKEN"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 400
    assert r.data["error"]["details"]["status"] == "Status must be ACTIVE or INACTIVE"


def test_partial_update_changes_type(api_client, tenant, clinic):
    wh = _create(api_client, tenant, clinic, type="SUB", name="Side").data

    r = api_client.patch(f"/api/v1/warehouses/{wh['id']}/", {"type": "MAIN"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["type"] == WarehouseType.MAIN


def test_manager_kept_when_omitted_and_cleared_with_null(api_client, tenant, clinic, user):
    wh = _create(api_client, tenant, clinic, manager_user_id=user.id).data
    assert wh["manager_user_id"] == user.id
    url = f"/api/v1/warehouses/{wh['id']}/"

    r = api_client.patch(url, {"name": "Renamed store"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["manager_user_id"] == user.id

    r = api_client.patch(url, {"manager_user_id": None}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["manager_user_id"] is None
    assert Warehouse.objects.get(id=wh["id"]).manager_user_id is None


def test_delete_is_soft_and_blocked_by_items(api_client, tenant, clinic):
    wh = _create(api_client, tenant, clinic).data

    item = api_client.post(
        "/api/v1/inventory/",
        {
            "name": "Saline",
            "category": "medications",
            "sku": "SAL-1",
            "current_stock": 5,
            "branch_warehouses": [{"branch_id": str(clinic.id), "warehouse_id": wh["id"]}],
        },
        format="json",
        **scoped(tenant, clinic),
    )
    assert item.status_code == 201, item.data

    r = api_client.delete(f"/api/v1/warehouses/{wh['id']}/", **scoped(tenant, clinic))
    assert r.status_code == 400
    assert r.data["error"]["message"] == HAS_ITEMS_MSG

    api_client.delete(f"/api/v1/inventory/{item.data['id']}/", **scoped(tenant, clinic))
    r = api_client.delete(f"/api/v1/warehouses/{wh['id']}/", **scoped(tenant, clinic))
    assert r.status_code == 204
    assert Warehouse.objects.get(id=wh["id"]).deleted_at is not None

    g = api_client.get(f"/api/v1/warehouses/{wh['id']}/", **scoped(tenant, clinic))
    assert g.status_code == 404


def test_items_in_warehouse(api_client, tenant, clinic):
    wh = _create(api_client, tenant, clinic).data
    for sku, name in (("SYR-5", "Syringe 5ml"), ("GLV-M", "Gloves M")):
        api_client.post(
            "/api/v1/inventory/",
            {
                "name": name,
                "category": "consumables",
                "sku": sku,
                "branch_warehouses": [{"branch_id": str(clinic.id), "warehouse_id": wh["id"]}],
            },
            format="json",
            **scoped(tenant, clinic),
        )

    r = api_client.get(f"/api/v1/warehouses/{wh['id']}/items/", {"search": "glov"}, **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert [i["sku"] for i in r.data["results"]] == ["GLV-M"]
