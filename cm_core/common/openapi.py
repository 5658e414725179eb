# backend/cm_core/common/openapi.py
from __future__ import annotations

from drf_spectacular.openapi import AutoSchema
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter

from cm_core.iam.scope import HDR_CLINIC, HDR_TENANT


def _scope_header(name: str, *, required: bool, description: str) -> OpenApiParameter:
    return OpenApiParameter(
        name=name,
        type=OpenApiTypes.UUID,
        location=OpenApiParameter.HEADER,
        required=required,
        description=description,
    )


class ClinicScopedAutoSchema(AutoSchema):
    """
    Documents X-Tenant-Id / X-Clinic-Id on every scoped operation.

    Auth, tenant-admin and schema/docs views get neither. Clinic creation and clinics/mine document
    X-Clinic-Id as optional: a tenant's first clinic has nothing to scope to, and a user
    lists their clinics before picking one.
    """

    UNSCOPED_MODULE_PREFIXES = ("rest_framework_simplejwt.", "cm_core.tenants.api.", "drf_spectacular.")

    def _is_unscoped(self) -> bool:
        view = getattr(self, "view", None)
        if view is None:
            return False
        return (view.__class__.__module__ or "").startswith(self.UNSCOPED_MODULE_PREFIXES)

    def _is_tenant_only(self) -> bool:
        view = getattr(self, "view", None)
        return (
            (self.method, getattr(view, "action", None)) in {("POST", "create"), ("GET", "mine")}
            and (view.__class__.__module__ or "").startswith("cm_core.clinics.")
        )

    def get_override_parameters(self):
        params = list(super().get_override_parameters() or [])
        if self._is_unscoped():
            return params

        headers = [
            _scope_header(HDR_TENANT, required=True, description="Tenant UUID."),
            _scope_header(
                HDR_CLINIC,
                required=not self._is_tenant_only(),
                description="Current clinic (branch) UUID; the caller must be an active member.",
            ),
        ]
        existing = {p.name.lower() for p in params if isinstance(p, OpenApiParameter)}
        params.extend(h for h in headers if h.name.lower() not in existing)
        return params
