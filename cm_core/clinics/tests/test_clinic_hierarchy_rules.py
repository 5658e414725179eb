import pytest
from rest_framework.exceptions import PermissionDenied, ValidationError

from cm_core.clinics.hierarchy import (
    INVALID_PARENT_MSG,
    MAIN_DELETION_MSG,
    MAIN_DISABLE_MSG,
    MAIN_HAS_PARENT_MSG,
    MAIN_NOT_UNIQUE_MSG,
    SUB_CANNOT_CREATE_MSG,
    SUB_WITHOUT_PARENT_MSG,
    ClinicHierarchyRules,
    decide_placement,
)
from cm_core.clinics.models import Clinic

pytestmark = pytest.mark.django_db


def _msg(exc_info, field):
    return str(exc_info.value.detail[field])


def test_main_with_parent_is_rejected(tenant, clinic):
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_hierarchy(is_main_clinic=True, parent_clinic_id=clinic.id)
    assert _msg(e, "parent_clinic_id") == MAIN_HAS_PARENT_MSG


def test_sub_without_parent_is_rejected():
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_hierarchy(is_main_clinic=False, parent_clinic_id=None)
    assert _msg(e, "parent_clinic_id") == SUB_WITHOUT_PARENT_MSG


def test_second_main_is_rejected(tenant, clinic):
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_main_uniqueness(tenant_id=tenant.id)
    assert _msg(e, "is_main_clinic") == MAIN_NOT_UNIQUE_MSG

    # the Main itself may be re-validated
    ClinicHierarchyRules.validate_main_uniqueness(tenant_id=tenant.id, exclude_clinic_id=clinic.id)


def test_parent_must_be_main_of_same_tenant(tenant, clinic, make_branch, other_clinic):
    sub = make_branch()

    ClinicHierarchyRules.validate_parent_is_main(parent_clinic_id=clinic.id, tenant_id=tenant.id)

    for bad_parent in (sub.id, other_clinic.id):
        with pytest.raises(ValidationError) as e:
            ClinicHierarchyRules.validate_parent_is_main(parent_clinic_id=bad_parent, tenant_id=tenant.id)
        assert _msg(e, "parent_clinic_id") == INVALID_PARENT_MSG


def test_business_rules_first_failure_wins(tenant, clinic):
    # hierarchy shape is checked before uniqueness
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_clinic_business_rules(
            tenant_id=tenant.id,
            is_main_clinic=True,
            parent_clinic_id=clinic.id,
        )
    assert _msg(e, "parent_clinic_id") == MAIN_HAS_PARENT_MSG


def test_lone_main_cannot_be_deleted(clinic, make_branch):
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_main_deletion(clinic=clinic)
    assert _msg(e, "detail") == MAIN_DELETION_MSG

    make_branch()
    ClinicHierarchyRules.validate_main_deletion(clinic=clinic)


def test_main_cannot_be_disabled():
    with pytest.raises(ValidationError) as e:
        ClinicHierarchyRules.validate_main_status_change(is_main_clinic=True, new_is_active=False)
    assert _msg(e, "is_active") == MAIN_DISABLE_MSG

    ClinicHierarchyRules.validate_main_status_change(is_main_clinic=True, new_is_active=True)
    ClinicHierarchyRules.validate_main_status_change(is_main_clinic=False, new_is_active=False)


def test_placement_first_clinic_is_main(other_tenant):
    p = decide_placement(tenant_id=other_tenant.id, member_clinic_ids=[])
    assert p.is_main_clinic is True
    assert p.parent_clinic_id is None


def test_placement_main_member_creates_sub(tenant, clinic, make_branch):
    sub = make_branch()
    p = decide_placement(tenant_id=tenant.id, member_clinic_ids=[sub.id, clinic.id])
    assert p.is_main_clinic is False
    assert p.parent_clinic_id == clinic.id


def test_placement_non_member_creates_sub(tenant, clinic):
    p = decide_placement(tenant_id=tenant.id, member_clinic_ids=[])
    assert p.parent_clinic_id == clinic.id


def test_placement_sub_only_member_is_denied(tenant, clinic, make_branch):
    sub = make_branch()
    with pytest.raises(PermissionDenied) as e:
        decide_placement(tenant_id=tenant.id, member_clinic_ids=[sub.id])
    assert str(e.value.detail) == SUB_CANNOT_CREATE_MSG


def test_placement_without_active_main_promotes_new_clinic(tenant):
    Clinic.objects.create(tenant=tenant, code="LEGACY1", name="Legacy", is_main_clinic=False)
    p = decide_placement(tenant_id=tenant.id, member_clinic_ids=[])
    assert p.is_main_clinic is True
