import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from cm_core.clinics.hierarchy import SUB_CANNOT_CREATE_MSG
from cm_core.clinics.models import Clinic
from cm_core.iam.models import ClinicMembership, UserProfile
from cm_core.iam.services.membership import add_member
from cm_core.statuses.models import AppointmentStatus
from cm_core.tests.helpers import scoped, tenant_only
from cm_core.warehouses.models import Warehouse, WarehouseType

pytestmark = pytest.mark.django_db


def _admin_client(username, tenant):
    user = get_user_model().objects.create_user(username=username, password="pass123")
    user.groups.add(Group.objects.get_or_create(name="ADMIN")[0])
    UserProfile.objects.create(user=user, tenant=tenant)
    c = APIClient()
    c.force_authenticate(user=user)
    return c, user


def _mains_for(tenant_id, branch_id):
    return Warehouse.objects.alive().filter(tenant_id=tenant_id, type=WarehouseType.MAIN, branch_links__branch_id=branch_id)


def test_first_clinic_becomes_main_with_main_warehouse(other_tenant):
    client, user = _admin_client("founder", other_tenant)

    r = client.post(
        "/api/v1/clinics/",
        {"name": "Downtown Care", "city": "Springfield"},
        format="json",
        **tenant_only(other_tenant),
    )
    assert r.status_code == 201, r.data
    assert r.data["is_main_clinic"] is True
    assert r.data["parent_clinic_id"] is None
    assert r.data["hierarchy_level"] == "main"
    assert r.data["code"].startswith("DC")
    assert r.data["working_hours"]["monday"]["is_working"] is True

    whs = list(_mains_for(other_tenant.id, r.data["id"]))
    assert len(whs) == 1
    assert whs[0].name == "Downtown Care - Main Warehouse"

    # the creator becomes a member of the new clinic
    assert ClinicMembership.objects.filter(clinic_id=r.data["id"], user_profile__user=user, is_active=True).exists()
    assert AppointmentStatus.objects.filter(clinic_id=r.data["id"]).count() == 6


def test_main_member_creates_sub_with_its_own_main_warehouse(api_client, tenant, clinic):
    r = api_client.post(
        "/api/v1/clinics/",
        {"name": "North Branch", "code": "north01"},
        format="json",
        **scoped(tenant, clinic),
    )
    assert r.status_code == 201, r.data
    assert r.data["is_main_clinic"] is False
    assert r.data["parent_clinic_id"] == str(clinic.id)
    assert r.data["code"] == "NORTH01"

    assert _mains_for(tenant.id, r.data["id"]).count() == 1
    assert Clinic.objects.filter(tenant=tenant, is_main_clinic=True).count() == 1


def test_client_cannot_choose_placement(api_client, tenant, clinic):
    r = api_client.post(
        "/api/v1/clinics/",
        {"name": "Sneaky Branch", "is_main_clinic": True, "parent_clinic_id": None},
        format="json",
        **scoped(tenant, clinic),
    )
    assert r.status_code == 201, r.data
    assert r.data["is_main_clinic"] is False


def test_sub_clinic_member_cannot_create_clinics(tenant, clinic, make_branch):
    sub = make_branch()
    client, user = _admin_client("subadmin", tenant)
    add_member(tenant_id=tenant.id, clinic_id=sub.id, user_id=user.id)

    r = client.post("/api/v1/clinics/", {"name": "Another"}, format="json", **scoped(tenant, sub))
    assert r.status_code == 403, r.data
    assert r.data["error"]["code"] == "permission_denied"
    assert r.data["error"]["message"] == SUB_CANNOT_CREATE_MSG


def test_duplicate_code_is_conflict(api_client, tenant, clinic):
    r = api_client.post("/api/v1/clinics/", {"name": "Dup", "code": "MAIN001"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 409, r.data
    assert r.data["error"]["code"] == "conflict"


def test_tenant_only_create_requires_admin_group(tenant, clinic):
    user = get_user_model().objects.create_user(username="plain", password="pass123")
    UserProfile.objects.create(user=user, tenant=tenant)
    c = APIClient()
    c.force_authenticate(user=user)

    r = c.post("/api/v1/clinics/", {"name": "Nope"}, format="json", **tenant_only(tenant))
    assert r.status_code == 403


def test_provisioning_failure_keeps_clinic(api_client, tenant, clinic, monkeypatch):
    from cm_core.warehouses.services import WarehouseService

    def boom(self, **kwargs):
        raise RuntimeError("warehouse store unavailable")

    monkeypatch.setattr(WarehouseService, "create", boom)

    r = api_client.post("/api/v1/clinics/", {"name": "East Branch"}, format="json", **scoped(tenant, clinic))
    assert r.status_code == 201, r.data
    assert Clinic.objects.filter(id=r.data["id"]).exists()
    assert not _mains_for(tenant.id, r.data["id"]).exists()


def test_hierarchy_endpoint(api_client, tenant, clinic, make_branch):
    a = make_branch("Alpha")
    make_branch("Beta", is_active=False)

    r = api_client.get("/api/v1/clinics/hierarchy/", **scoped(tenant, clinic))
    assert r.status_code == 200, r.data
    assert r.data["main_clinic"]["id"] == str(clinic.id)
    assert [c["id"] for c in r.data["sub_clinics"]] == [str(a.id)]


def test_list_is_tenant_scoped(api_client, tenant, clinic, other_clinic):
    r = api_client.get("/api/v1/clinics/", **scoped(tenant, clinic))
    assert r.status_code == 200
    ids = {c["id"] for c in r.data}
    assert str(clinic.id) in ids
    assert str(other_clinic.id) not in ids
