from types import SimpleNamespace

import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from django.core.management import call_command
from django.test import RequestFactory

from cm_core.common.permissions import (
    ALL_ROLES,
    ROLE_ADMIN,
    ROLE_READONLY,
    InventoryPermission,
    WarehousePermission,
    user_roles,
)
from cm_core.tests.helpers import scoped

pytestmark = pytest.mark.django_db


def _user(username, *groups, **extra):
    u = get_user_model().objects.create_user(username=username, password="pass123", **extra)
    for g in groups:
        u.groups.add(Group.objects.get_or_create(name=g)[0])
    return u


def _request(method, user, tenant, clinic):
    req = getattr(RequestFactory(), method.lower())("/api/v1/inventory/", **scoped(tenant, clinic))
    req.user = user
    return req


def test_ensure_roles_is_idempotent(capsys):
    call_command("ensure_roles")
    call_command("ensure_roles")

    assert set(Group.objects.values_list("name", flat=True)) >= set(ALL_ROLES)
    assert "Newly created: 0" in capsys.readouterr().out.splitlines()[-1]


def test_role_resolution():
    assert user_roles(_user("root", is_superuser=True)) == {ROLE_ADMIN}
    assert user_roles(_user("nobody")) == {ROLE_READONLY}
    assert user_roles(_user("pharm", "PHARMACY")) == {"PHARMACY"}


def test_action_roles(tenant, clinic):
    nurse = _user("nurse", "NURSE")
    pharmacist = _user("pharm", "PHARMACY")

    stock = SimpleNamespace(action="update_stock", kwargs={"pk": "x"})
    assert InventoryPermission().has_permission(_request("PATCH", nurse, tenant, clinic), stock)

    delete = SimpleNamespace(action="destroy", kwargs={"pk": "x"})
    assert not InventoryPermission().has_permission(_request("DELETE", pharmacist, tenant, clinic), delete)

    create = SimpleNamespace(action="create", kwargs={})
    assert not WarehousePermission().has_permission(_request("POST", pharmacist, tenant, clinic), create)


def test_unknown_safe_action_falls_back_to_read_roles(tenant, clinic):
    reader = _user("reader", "READONLY")
    view = SimpleNamespace(action=None, kwargs={})
    assert WarehousePermission().has_permission(_request("GET", reader, tenant, clinic), view)

    view = SimpleNamespace(action="mystery", kwargs={})
    assert not WarehousePermission().has_permission(_request("POST", reader, tenant, clinic), view)


def test_missing_scope_denies(tenant):
    req = RequestFactory().get("/api/v1/inventory/", HTTP_X_TENANT_ID=str(tenant.id))
    req.user = _user("admin", "ADMIN")
    assert not InventoryPermission().has_permission(req, SimpleNamespace(action="list", kwargs={}))
