# backend/cm_core/clinics/api/permissions.py
from __future__ import annotations

from cm_core.common.permissions import ADMINS, EVERYONE, BaseRolePermission, user_roles
from cm_core.iam.scope import peek_tenant_id
from cm_core.iam.services.membership import is_user_in_tenant


class ClinicPermission(BaseRolePermission):
    """
    Clinics are tenant-level objects. Any clinic role reads; ADMIN writes and
    manages clinic members.

    create and mine may run with tenant scope alone: a tenant's first clinic is
    created before any clinic membership exists, and a user lists their clinics
    before picking one.
    """
    allowed_roles_per_action = {
        "list": EVERYONE,
        "retrieve": EVERYONE,
        "hierarchy": EVERYONE,
        "mine": EVERYONE,
        "current": EVERYONE,
        "stats": EVERYONE,
        "create": ADMINS,
        "update": ADMINS,
        "partial_update": ADMINS,
        "deactivate": ADMINS,
        "users": ADMINS,
        "member": ADMINS,
    }
    tenant_level_actions = frozenset({"create", "mine"})

    def has_permission(self, request, view) -> bool:
        action = getattr(view, "action", None)
        if action not in self.tenant_level_actions:
            return super().has_permission(request, view)

        user = request.user
        if not getattr(user, "is_authenticated", False):
            return False

        tenant_id = peek_tenant_id(request)
        if tenant_id is None:
            return False
        request.tenant_id = tenant_id

        if not self.allowed_roles_per_action[action] & user_roles(user):
            return False
        return bool(user.is_superuser or is_user_in_tenant(user_id=user.id, tenant_id=tenant_id))
