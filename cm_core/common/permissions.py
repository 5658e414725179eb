# backend/cm_core/common/permissions.py
from __future__ import annotations

from typing import FrozenSet, Mapping, Optional

from rest_framework.permissions import SAFE_METHODS, BasePermission

from cm_core.iam.scope import peek_scope

# Django auth Group names
ROLE_ADMIN = "ADMIN"
ROLE_DOCTOR = "DOCTOR"
ROLE_NURSE = "NURSE"
ROLE_RECEPTION = "RECEPTION"
ROLE_PHARMACY = "PHARMACY"
ROLE_INVENTORY = "INVENTORY"
ROLE_READONLY = "READONLY"

ALL_ROLES = (
    ROLE_ADMIN,
    ROLE_DOCTOR,
    ROLE_NURSE,
    ROLE_RECEPTION,
    ROLE_PHARMACY,
    ROLE_INVENTORY,
    ROLE_READONLY,
)

EVERYONE: FrozenSet[str] = frozenset(ALL_ROLES)
ADMINS: FrozenSet[str] = frozenset({ROLE_ADMIN})
STOCK_KEEPERS: FrozenSet[str] = frozenset({ROLE_ADMIN, ROLE_PHARMACY, ROLE_INVENTORY})
STOCK_READERS: FrozenSet[str] = STOCK_KEEPERS | {ROLE_DOCTOR, ROLE_NURSE}

# Fallback action names for views without a router-assigned action
_METHOD_ACTIONS = {
    "POST": "create",
    "PUT": "update",
    "PATCH": "partial_update",
    "DELETE": "destroy",
}


def user_roles(user) -> FrozenSet[str]:
    """
    Role names from user.groups. Superusers count as ADMIN; a user without groups is READONLY.
    """
    if not user or not getattr(user, "is_authenticated", False):
        return frozenset()
    if getattr(user, "is_superuser", False):
        return ADMINS

    names = frozenset(user.groups.values_list("name", flat=True)) if hasattr(user, "groups") else frozenset()
    return names or frozenset({ROLE_READONLY})


def attach_scope(request) -> bool:
    """
    Make sure request.tenant_id / request.clinic_id are set.

    The middleware normally does this; under force_authenticate it skips, so fall back
    to the headers here. Returns False instead of raising so DRF answers 403.
    """
    if getattr(request, "tenant_id", None) and getattr(request, "clinic_id", None):
        return True

    scope = peek_scope(request)
    if scope is None:
        return False
    request.tenant_id = scope.tenant_id
    request.clinic_id = scope.clinic_id
    return True


class BaseRolePermission(BasePermission):
    """
    Role check per viewset action. Subclasses declare `allowed_roles_per_action`.

    ADMIN passes everything. Unlisted safe requests fall back to list/retrieve;
    any other unlisted action is denied.
    """
    message = "You do not have permission to perform this action."

    allowed_roles_per_action: Mapping[str, FrozenSet[str]] = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": ADMINS,
        "update": ADMINS,
        "partial_update": ADMINS,
        "destroy": ADMINS,
    }

    @staticmethod
    def _read_action(view) -> str:
        kwargs = getattr(view, "kwargs", None) or {}
        return "retrieve" if ("pk" in kwargs or "id" in kwargs) else "list"

    def _allowed_for(self, request, view) -> Optional[FrozenSet[str]]:
        action = getattr(view, "action", None)
        if not action:
            action = self._read_action(view) if request.method in SAFE_METHODS else _METHOD_ACTIONS.get(request.method)

        allowed = self.allowed_roles_per_action.get(action) if action else None
        if allowed is None and request.method in SAFE_METHODS:
            allowed = self.allowed_roles_per_action.get(self._read_action(view))
        return allowed

    def has_role(self, request, view) -> bool:
        roles = user_roles(request.user)
        if ROLE_ADMIN in roles:
            return True
        allowed = self._allowed_for(request, view)
        return bool(allowed and roles & allowed)

    def has_permission(self, request, view) -> bool:
        if not attach_scope(request):
            return False
        if not getattr(request.user, "is_authenticated", False):
            return False
        return self.has_role(request, view)

    def has_object_permission(self, request, view, obj) -> bool:
        return self.has_permission(request, view)


class WarehousePermission(BaseRolePermission):
    """Warehouses: everyone reads, inventory managers write, only ADMIN deletes."""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "items": STOCK_READERS,
        "create": frozenset({ROLE_ADMIN, ROLE_INVENTORY}),
        "update": frozenset({ROLE_ADMIN, ROLE_INVENTORY}),
        "partial_update": frozenset({ROLE_ADMIN, ROLE_INVENTORY}),
        "set_status": frozenset({ROLE_ADMIN, ROLE_INVENTORY}),
        "destroy": ADMINS,
    }


class InventoryPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "create": STOCK_KEEPERS,
        "update": STOCK_KEEPERS,
        "partial_update": STOCK_KEEPERS,
        "destroy": frozenset({ROLE_ADMIN, ROLE_INVENTORY}),
        "update_stock": STOCK_KEEPERS | {ROLE_NURSE},
        "low_stock": STOCK_READERS,
        "expired": STOCK_READERS,
        "expiring": STOCK_READERS,
        "stats": STOCK_KEEPERS,
    }


class AppointmentStatusPermission(BaseRolePermission):
    """Read-only configuration."""
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "default": EVERYONE,
    }


class AuditPermission(BaseRolePermission):
    allowed_roles_per_action = {
        "list": ADMINS,
        "retrieve": ADMINS,
    }
