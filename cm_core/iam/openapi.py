# backend/cm_core/iam/openapi.py
from django.conf import settings
from drf_spectacular.extensions import OpenApiAuthenticationExtension


class CookieOrHeaderJWTAuthenticationScheme(OpenApiAuthenticationExtension):
    target_class = "cm_core.iam.auth.CookieOrHeaderJWTAuthentication"
    name = "BearerOrCookieJWT"

    def get_security_definition(self, auto_schema):
        cookie = settings.SIMPLE_JWT.get("AUTH_COOKIE", "cm_access")
        return {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": f"Access token from /auth/login/, as a Bearer header or the `{cookie}` cookie.",
        }
