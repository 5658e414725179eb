# backend/cm_core/iam/scope.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from rest_framework.exceptions import PermissionDenied, ValidationError

HDR_TENANT = "X-Tenant-Id"
HDR_CLINIC = "X-Clinic-Id"

MISSING_SCOPE_MSG = "Missing scope headers. Provide X-Tenant-Id and X-Clinic-Id."
INVALID_SCOPE_MSG = "Invalid scope headers. Provide valid UUIDs for X-Tenant-Id and X-Clinic-Id."
NO_CLINIC_ACCESS_MSG = "You do not have access to the selected clinic."


@dataclass(frozen=True)
class Scope:
    """The (tenant, clinic) pair every scoped request runs under."""

    tenant_id: UUID
    clinic_id: UUID


def header(request, name: str) -> Optional[str]:
    """
    request.headers when present (DRF/Django requests), else raw META (RequestFactory, HTTP_* keys).
    """
    headers = getattr(request, "headers", None)
    value = headers.get(name) if headers is not None else None
    if value:
        return value
    return request.META.get("HTTP_" + name.upper().replace("-", "_")) or None


def as_uuid(value) -> Optional[UUID]:
    if value in (None, ""):
        return None
    try:
        return UUID(str(value))
    except ValueError:
        return None


def peek_tenant_id(request) -> Optional[UUID]:
    """X-Tenant-Id as a UUID, or None when missing or malformed. Never raises."""
    return getattr(request, "tenant_id", None) or as_uuid(header(request, HDR_TENANT))


def peek_scope(request) -> Optional[Scope]:
    """Both scope headers as a Scope, or None when either is missing or malformed. Never raises."""
    tenant_id = as_uuid(header(request, HDR_TENANT))
    clinic_id = as_uuid(header(request, HDR_CLINIC))
    if tenant_id is None or clinic_id is None:
        return None
    return Scope(tenant_id=tenant_id, clinic_id=clinic_id)


def resolve_scope_from_headers(request) -> Optional[Scope]:
    """
    Strict variant used by the auth layer.

    Neither header -> None. One header, or a value that is not a UUID -> 400.
    """
    tenant_raw = header(request, HDR_TENANT)
    clinic_raw = header(request, HDR_CLINIC)
    if not tenant_raw and not clinic_raw:
        return None
    if not tenant_raw or not clinic_raw:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})

    scope = peek_scope(request)
    if scope is None:
        raise ValidationError({"detail": INVALID_SCOPE_MSG})
    return scope


def require_scope(request) -> Scope:
    """
    Scope for a view body. Values attached by middleware or permissions win over headers.
    """
    tenant_id = getattr(request, "tenant_id", None)
    clinic_id = getattr(request, "clinic_id", None)
    if tenant_id and clinic_id:
        return Scope(tenant_id=UUID(str(tenant_id)), clinic_id=UUID(str(clinic_id)))

    scope = resolve_scope_from_headers(request)
    if scope is None:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})
    return scope


def assert_user_membership(user, scope: Scope) -> None:
    from cm_core.iam.services.membership import is_user_member_of_clinic

    if not user or not getattr(user, "is_authenticated", False):
        raise PermissionDenied("Authentication required to set scope.")
    if not is_user_member_of_clinic(user_id=user.id, tenant_id=scope.tenant_id, clinic_id=scope.clinic_id):
        raise PermissionDenied(NO_CLINIC_ACCESS_MSG)


def apply_scope_from_headers(request, user=None) -> Optional[Scope]:
    """
    Called from CookieOrHeaderJWTAuthentication once the token is accepted.

    Tenant-only requests are left to the view permission (a tenant's first clinic).
    """
    if header(request, HDR_TENANT) and not header(request, HDR_CLINIC):
        return None

    scope = resolve_scope_from_headers(request)
    if scope is None:
        return None

    assert_user_membership(user or getattr(request, "user", None), scope)
    request.tenant_id = scope.tenant_id
    request.clinic_id = scope.clinic_id
    request.scope = scope
    return scope
