import json

import pytest
from rest_framework.test import APIClient

pytestmark = pytest.mark.django_db


@pytest.fixture
def schema():
    r = APIClient().get("/api/schema/", {"format": "json"})
    assert r.status_code == 200
    return json.loads(r.content)


def _header_params(operation):
    return {p["name"]: p for p in operation.get("parameters", []) if p["in"] == "header"}


def test_only_versioned_paths_are_published(schema):
    paths = schema["paths"]
    assert "/api/v1/warehouses/" in paths
    assert not any(p.startswith("/api/") and not p.startswith("/api/v1/") for p in paths)


def test_scope_headers_documented_per_operation(schema):
    paths = schema["paths"]

    listing = _header_params(paths["/api/v1/warehouses/"]["get"])
    assert listing["X-Tenant-Id"]["required"] is True
    assert listing["X-Clinic-Id"]["required"] is True

    clinic_create = _header_params(paths["/api/v1/clinics/"]["post"])
    assert clinic_create["X-Tenant-Id"]["required"] is True
    assert clinic_create["X-Clinic-Id"].get("required", False) is False

    assert _header_params(paths["/api/v1/tenants/"]["get"]) == {}
    assert "BearerOrCookieJWT" in schema["components"]["securitySchemes"]


def test_clinic_member_routes_published(schema):
    paths = schema["paths"]

    mine = _header_params(paths["/api/v1/clinics/mine/"]["get"])
    assert mine["X-Clinic-Id"].get("required", False) is False

    member_paths = [p for p in paths if p.startswith("/api/v1/clinics/") and p.endswith("/users/{user_id}/")]
    assert len(member_paths) == 1
    assert {"put", "patch", "delete"} <= set(paths[member_paths[0]])
