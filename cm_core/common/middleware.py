# backend/cm_core/common/middleware.py
from __future__ import annotations

import logging

from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

from cm_core.common.api.exceptions import build_error_envelope
from cm_core.iam.scope import (
    HDR_CLINIC,
    HDR_TENANT,
    INVALID_SCOPE_MSG,
    MISSING_SCOPE_MSG,
    NO_CLINIC_ACCESS_MSG,
    Scope,
    as_uuid,
    header,
)

logger = logging.getLogger(__name__)

# RequestScope is what views find on request.scope
RequestScope = Scope


class TenantClinicScopeMiddleware(MiddlewareMixin):
    """
    Tenant/clinic scope gate for /api/v1/* and the /api/* alias.

    Skipped: docs, schema, admin, the API root, login/refresh, and /tenants/ (platform admin).
    POST .../clinics/ and GET .../clinics/mine/ may carry X-Tenant-Id alone and are then
    checked against tenant membership.
    Everything else needs both headers as UUIDs (400) and an active clinic membership (403).
    Anonymous requests pass through so DRF can answer 401.

    On success request.scope, request.tenant_id and request.clinic_id are set.
    """

    API_PREFIXES = ("/api/v1/", "/api/")
    PUBLIC_PREFIXES = ("/admin/", "/api/docs/", "/api/schema/")
    API_ROOTS = ("/api/v1/", "/api/")
    AUTH_SUFFIXES = ("/auth/login/", "/auth/refresh/")
    UNSCOPED_SEGMENTS = ("/tenants/",)
    TENANT_ONLY_ROUTES = (("POST", "/clinics/"), ("GET", "/clinics/mine/"))

    def _exempt(self, path: str) -> bool:
        if path.startswith(self.PUBLIC_PREFIXES) or not path.startswith(self.API_PREFIXES):
            return True
        if path in self.API_ROOTS or path.endswith(self.AUTH_SUFFIXES):
            return True
        return any(seg in path for seg in self.UNSCOPED_SEGMENTS)

    def _tenant_only_route(self, method: str, path: str) -> bool:
        return any(method == m and path.endswith(suffix) for m, suffix in self.TENANT_ONLY_ROUTES)

    def _deny(self, request, status_code: int, message: str) -> JsonResponse:
        code = "validation_error" if status_code == 400 else "permission_denied"
        return JsonResponse(build_error_envelope(request=request, code=code, message=message), status=status_code)

    def _tenant_only(self, request, user, tenant_raw: str):
        tenant_id = as_uuid(tenant_raw)
        if tenant_id is None:
            return self._deny(request, 400, INVALID_SCOPE_MSG)

        from cm_core.iam.services import membership

        if not user.is_superuser and not membership.is_user_in_tenant(user_id=user.id, tenant_id=tenant_id):
            return self._deny(request, 403, "You do not have access to the selected tenant.")

        request.tenant_id = tenant_id
        return None

    def process_request(self, request):
        request.scope = None
        request.tenant_id = None
        request.clinic_id = None

        path = getattr(request, "path", "") or ""
        if self._exempt(path):
            return None

        user = getattr(request, "user", None)
        if not user or not user.is_authenticated:
            return None

        tenant_raw = header(request, HDR_TENANT)
        clinic_raw = header(request, HDR_CLINIC)

        if tenant_raw and not clinic_raw and self._tenant_only_route(request.method, path):
            return self._tenant_only(request, user, tenant_raw)

        if not tenant_raw or not clinic_raw:
            return self._deny(request, 400, MISSING_SCOPE_MSG)

        tenant_id, clinic_id = as_uuid(tenant_raw), as_uuid(clinic_raw)
        if tenant_id is None or clinic_id is None:
            return self._deny(request, 400, INVALID_SCOPE_MSG)

        from cm_core.iam.services import membership

        if not membership.is_user_member_of_clinic(user_id=user.id, tenant_id=tenant_id, clinic_id=clinic_id):
            logger.info("Scope denied for user=%s tenant=%s clinic=%s", user.id, tenant_id, clinic_id)
            return self._deny(request, 403, NO_CLINIC_ACCESS_MSG)

        request.scope = RequestScope(tenant_id=tenant_id, clinic_id=clinic_id)
        request.tenant_id = tenant_id
        request.clinic_id = clinic_id
        return None
