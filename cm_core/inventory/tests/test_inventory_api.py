from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from cm_core.inventory.models import InventoryItem
from cm_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def _post_item(api_client, tenant, clinic, **body):
    payload = {"name": "Paracetamol 500mg", "category": "medications", "sku": "para-500", "current_stock": 100}
    payload.update(body)
    return api_client.post("/api/v1/inventory/", payload, format="json", **scoped(tenant, clinic))


def _raw_item(tenant, clinic, sku, **fields):
    fields.setdefault("name", f"Item {sku}")
    fields.setdefault("category", "consumables")
    return InventoryItem.objects.create(tenant_id=tenant.id, clinic_id=clinic.id, sku=sku, **fields)


def test_create_item_seeds_branch_stock(api_client, tenant, clinic, branch_b, warehouses):
    r = _post_item(api_client, tenant, clinic, assigned_branches=[str(clinic.id), str(branch_b.id)])
    assert r.status_code == 201, r.data
    assert r.data["sku"] == "PARA-500"
    assert sorted(r.data["assigned_branches"]) == sorted([str(clinic.id), str(branch_b.id)])

    stock = {(e["branch_id"], e["warehouse_id"]): e["stock"] for e in r.data["stock_by_branch_warehouse"]}
    assert stock == {
        (str(clinic.id), str(warehouses["a"].id)): 100,
        (str(branch_b.id), str(warehouses["b"].id)): 100,
    }


def test_invalid_sku_rejected(api_client, tenant, clinic):
    r = _post_item(api_client, tenant, clinic, sku="bad sku!")
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"
    assert "sku" in r.data["error"]["details"]


def test_duplicate_sku_is_409(api_client, tenant, clinic):
    assert _post_item(api_client, tenant, clinic).status_code == 201
    r = _post_item(api_client, tenant, clinic, name="Other name")
    assert r.status_code == 409, r.data
    assert r.data["error"]["code"] == "conflict"
    assert r.data["error"]["message"] == "SKU already exists"


def test_stock_endpoint_scoped_subtract(api_client, tenant, clinic, branch_b, warehouses):
    item = _post_item(api_client, tenant, clinic, assigned_branches=[str(clinic.id), str(branch_b.id)]).data

    r = api_client.patch(
        f"/api/v1/inventory/{item['id']}/stock/",
        {"quantity": 30, "operation": "subtract", "branch_id": str(branch_b.id), "warehouse_id": str(warehouses["b"].id)},
        format="json",
        **scoped(tenant, clinic),
    )
    assert r.status_code == 200, r.data
    assert r.data["current_stock"] == 100
    stock = {e["branch_id"]: e["stock"] for e in r.data["stock_by_branch_warehouse"]}
    assert stock == {str(clinic.id): 100, str(branch_b.id): 70}


def test_stock_endpoint_over_subtract_envelope(api_client, tenant, clinic, warehouses):
    item = _post_item(api_client, tenant, clinic, current_stock=5, assigned_branches=[str(clinic.id)]).data

    r = api_client.patch(
        f"/api/v1/inventory/{item['id']}/stock/",
        {"quantity": 6, "operation": "subtract", "branch_id": str(clinic.id), "warehouse_id": str(warehouses["a"].id)},
        format="json",
        **scoped(tenant, clinic),
    )
    assert r.status_code == 400, r.data
    err = r.data["error"]
    assert err["message"] == "Cannot subtract more than available stock. Available stock: 5"
    assert err["details"] == {"available_stock": 5, "requested_quantity": 6}


def test_stock_endpoint_rejects_zero_quantity(api_client, tenant, clinic):
    item = _post_item(api_client, tenant, clinic).data
    r = api_client.patch(
        f"/api/v1/inventory/{item['id']}/stock/",
        {"quantity": 0, "operation": "add"},
        format="json",
        **scoped(tenant, clinic),
    )
    assert r.status_code == 400
    assert "quantity" in r.data["error"]["details"]


def test_list_shows_owned_and_assigned_items(api_client, tenant, clinic, branch_b, user):
    from cm_core.iam.services.membership import add_member

    add_member(tenant_id=tenant.id, clinic_id=branch_b.id, user_id=user.id)
    owned_by_b = _raw_item(tenant, branch_b, "B-ONLY")
    _post_item(api_client, tenant, clinic, sku="SHARED-1", assigned_branches=[str(branch_b.id)])
    _post_item(api_client, tenant, clinic, sku="MAIN-ONLY")

    r = api_client.get("/api/v1/inventory/", **scoped(tenant, branch_b))
    assert r.status_code == 200, r.data
    assert {i["sku"] for i in r.data["results"]} == {"B-ONLY", "SHARED-1"}

    r = api_client.get("/api/v1/inventory/", {"search": "b-only"}, **scoped(tenant, branch_b))
    assert [i["id"] for i in r.data["results"]] == [str(owned_by_b.id)]


def test_list_status_filters(api_client, tenant, clinic):
    _raw_item(tenant, clinic, "EMPTY", current_stock=0)
    _raw_item(tenant, clinic, "LOW", current_stock=2, minimum_stock=5)
    _raw_item(tenant, clinic, "PLENTY", current_stock=50, minimum_stock=5)

    r = api_client.get("/api/v1/inventory/", {"status": "low_stock"}, **scoped(tenant, clinic))
    assert {i["sku"] for i in r.data["results"]} == {"EMPTY", "LOW"}

    r = api_client.get("/api/v1/inventory/", {"status": "out_of_stock"}, **scoped(tenant, clinic))
    assert [i["sku"] for i in r.data["results"]] == ["EMPTY"]

    r = api_client.get("/api/v1/inventory/low-stock/", **scoped(tenant, clinic))
    assert [i["sku"] for i in r.data["results"]] == ["LOW", "EMPTY"]


def test_expired_and_expiring(api_client, tenant, clinic):
    today = timezone.localdate()
    _raw_item(tenant, clinic, "OLD", expiry_date=today - timedelta(days=1))
    _raw_item(tenant, clinic, "SOON", expiry_date=today + timedelta(days=10))
    _raw_item(tenant, clinic, "LATER", expiry_date=today + timedelta(days=90))

    r = api_client.get("/api/v1/inventory/expired/", **scoped(tenant, clinic))
    assert [i["sku"] for i in r.data["results"]] == ["OLD"]

    r = api_client.get("/api/v1/inventory/expiring/", **scoped(tenant, clinic))
    assert [i["sku"] for i in r.data["results"]] == ["SOON"]

    r = api_client.get("/api/v1/inventory/expiring/", {"days": "120"}, **scoped(tenant, clinic))
    assert [i["sku"] for i in r.data["results"]] == ["SOON", "LATER"]

    r = api_client.get("/api/v1/inventory/expiring/", {"days": "soon"}, **scoped(tenant, clinic))
    assert r.status_code == 400


def test_stats(api_client, tenant, clinic):
    today = timezone.localdate()
    _raw_item(tenant, clinic, "GONE", category="medications", current_stock=0, unit_price=Decimal("2.00"))
    _raw_item(
        tenant,
        clinic,
        "GAUZE",
        category="consumables",
        current_stock=10,
        minimum_stock=2,
        unit_price=Decimal("1.50"),
        expiry_date=today - timedelta(days=3),
    )
    _raw_item(tenant, clinic, "TAPE", category="consumables", current_stock=4, unit_price=Decimal("0.25"))

    r = api_client.get("/api/v1/inventory/stats/", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["total_items"] == 3
    assert r.data["out_of_stock_items"] == 1
    assert r.data["low_stock_items"] == 1
    assert r.data["expired_items"] == 1
    assert Decimal(r.data["total_value"]) == Decimal("16.00")

    cats = {c["category"]: c for c in r.data["category_stats"]}
    assert r.data["category_stats"][0]["category"] == "consumables"
    assert cats["consumables"]["count"] == 2
    assert Decimal(cats["consumables"]["total_value"]) == Decimal("16.00")


def test_update_and_delete_owned_item(api_client, tenant, clinic):
    item = _post_item(api_client, tenant, clinic).data

    r = api_client.patch(f"/api/v1/inventory/{item['id']}/", {"minimum_stock": 20, "sku": "para-501"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["minimum_stock"] == 20
    assert r.data["sku"] == "PARA-501"

    r = api_client.patch(f"/api/v1/inventory/{item['id']}/", {}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 400

    r = api_client.delete(f"/api/v1/inventory/{item['id']}/", **scoped(tenant, clinic))
    assert r.status_code == 204
    assert not InventoryItem.objects.filter(id=item["id"]).exists()
