# backend/cm_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from cm_core.clinics.models import Clinic
from cm_core.tenants.models import Tenant


@pytest.fixture
def tenant(db):
    return Tenant.objects.create(code="test-tenant", name="Test Tenant")


@pytest.fixture
def clinic(db, tenant):
    """
    The tenant's Main Clinic.
    """
    return Clinic.objects.create(tenant=tenant, code="MAIN001", name="Main Clinic", is_main_clinic=True)


@pytest.fixture
def make_branch(db, tenant, clinic):
    """
    Factory for Sub Clinics under the Main Clinic fixture.
    """
    counter = {"n": 0}

    def _make(name: str | None = None, **kwargs):
        counter["n"] += 1
        n = counter["n"]
        return Clinic.objects.create(
            tenant=kwargs.pop("tenant", tenant),
            code=kwargs.pop("code", f"SUB{n:03d}"),
            name=name or f"Branch {n}",
            is_main_clinic=False,
            parent_clinic=kwargs.pop("parent_clinic", clinic),
            **kwargs,
        )

    return _make


@pytest.fixture
def user(db, tenant, clinic):
    """
    Test user with ADMIN group + admin membership of the Main Clinic:
      auth_user -> UserProfile -> ClinicMembership
    """
    from cm_core.iam.services.membership import add_member

    User = get_user_model()
    user = User.objects.create_user(
        username="testuser",
        password="testpass",
        is_active=True,
    )

    admin_group, _ = Group.objects.get_or_create(name="ADMIN")
    user.groups.add(admin_group)

    add_member(tenant_id=tenant.id, clinic_id=clinic.id, user_id=user.id)
    return user


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def other_tenant(db):
    return Tenant.objects.create(code="other-tenant", name="Other Tenant")


@pytest.fixture
def other_clinic(db, other_tenant):
    return Clinic.objects.create(tenant=other_tenant, code="OTHER01", name="Other Clinic", is_main_clinic=True)
