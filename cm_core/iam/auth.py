# backend/cm_core/iam/auth.py
from __future__ import annotations

from django.conf import settings
from rest_framework_simplejwt.authentication import JWTAuthentication

from cm_core.iam.scope import apply_scope_from_headers


class CookieOrHeaderJWTAuthentication(JWTAuthentication):
    """
    simplejwt authentication that also accepts the access token from an HttpOnly cookie
    (Authorization header wins). Once the user is known the scope headers are
    validated against their clinic memberships.
    """

    def _cookie_token(self, request):
        return request.COOKIES.get(settings.SIMPLE_JWT.get("AUTH_COOKIE", "cm_access")) or None

    def authenticate(self, request):
        if self.get_header(request) is not None:
            result = super().authenticate(request)
        else:
            raw_token = self._cookie_token(request)
            if raw_token is None:
                return None
            token = self.get_validated_token(raw_token)
            result = (self.get_user(token), token)

        if result is None:
            return None
        apply_scope_from_headers(request, user=result[0])
        return result
