# backend/cm_core/common/api/exceptions.py
from __future__ import annotations

import logging
import uuid
from typing import Any, Optional, Tuple

from django.core.exceptions import ObjectDoesNotExist
from django.http import Http404
from rest_framework import status
from rest_framework.exceptions import APIException, NotAuthenticated, NotFound, PermissionDenied, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)

FALLBACK_MESSAGE = "Request failed."

# First match wins; ValidationError is listed before its APIException parent.
_ERROR_CODES: Tuple[Tuple[tuple, str], ...] = (
    ((ValidationError,), "validation_error"),
    ((NotAuthenticated,), "not_authenticated"),
    ((PermissionDenied,), "permission_denied"),
    ((Http404, NotFound), "not_found"),
)


def ensure_request_id(request) -> str:
    """Stable per-request id, created on first use and cached on the request."""
    rid = getattr(request, "request_id", None) if request is not None else None
    if not rid:
        rid = uuid.uuid4().hex
        if request is not None:
            request.request_id = rid
    return rid


def build_error_envelope(*, request=None, code: str, message: str, details: Any = None) -> dict[str, Any]:
    """
    {"error": {code, message, details, request_id}}, shared by the scope middleware and DRF.
    """
    return {
        "error": {
            "code": code,
            "message": message,
            "details": details,
            "request_id": ensure_request_id(request),
        }
    }


class ConflictError(APIException):
    """409 for unique-key collisions (clinic code, tenant code, inventory SKU)."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"

    def __init__(self, detail=None, code=None):
        super().__init__(detail=detail or self.default_detail, code=code or self.default_code)


def error_code(exc: Exception, http_status: int) -> str:
    for types, code in _ERROR_CODES:
        if isinstance(exc, types):
            return code
    if isinstance(exc, APIException):
        return getattr(exc, "default_code", None) or "api_error"
    return "server_error" if http_status >= 500 else "error"


def split_message(data: Any) -> Tuple[str, Optional[Any]]:
    """
    Pull a human message out of DRF's response.data.

    {"detail": m}        -> (m, None)
    {"detail": m, **kw}  -> (m, kw)
    [m]                  -> (m, None)   e.g. ValidationError("...")
    anything else        -> ("Request failed.", data)
    """
    if isinstance(data, dict) and "detail" in data:
        rest = {k: v for k, v in data.items() if k != "detail"}
        return str(data["detail"]), (rest or None)
    if isinstance(data, list) and len(data) == 1 and isinstance(data[0], str):
        return str(data[0]), None
    return FALLBACK_MESSAGE, data


def api_exception_handler(exc: Exception, context: dict[str, Any]):
    request = context.get("request")

    # Model.DoesNotExist reads the same as "not in your tenant"
    if isinstance(exc, ObjectDoesNotExist):
        exc = NotFound("Not found.")

    response = drf_exception_handler(exc, context)
    if response is None:
        logger.exception("Unhandled API error", exc_info=exc)
        return Response(
            build_error_envelope(request=request, code="server_error", message="Unexpected server error."),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    message, details = split_message(response.data)
    return Response(
        build_error_envelope(
            request=request,
            code=error_code(exc, response.status_code),
            message=message,
            details=details,
        ),
        status=response.status_code,
        headers=response.headers,
    )
