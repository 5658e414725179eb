# backend/cm_core/clinics/models.py
from __future__ import annotations

import uuid

from django.conf import settings
from django.core.validators import MinLengthValidator, RegexValidator
from django.db import models

from cm_core.tenants.models import Tenant

clinic_code_validator = RegexValidator(
    regex=r"^[A-Z0-9]{3,20}$",
    message="Clinic code must be 3-20 uppercase letters or digits.",
)


def _default_timezone() -> str:
    return getattr(settings, "CM_DEFAULT_TIMEZONE", "UTC")


def _default_currency() -> str:
    return getattr(settings, "CM_DEFAULT_CURRENCY", "USD")


def _default_language() -> str:
    return getattr(settings, "CM_DEFAULT_LANGUAGE", "en")


class Clinic(models.Model):
    """
    A branch under a Tenant.

    Hierarchy: exactly one active Main Clinic per tenant (parent_clinic = NULL);
    every other clinic is a Sub Clinic whose parent_clinic is that Main Clinic.
    The rule spans rows, so it is enforced by cm_core.clinics.hierarchy inside the
    write transaction rather than by a database constraint.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    tenant = models.ForeignKey(Tenant, on_delete=models.PROTECT, related_name="clinics")

    name = models.CharField(max_length=100, validators=[MinLengthValidator(2)])
    code = models.CharField(max_length=20, validators=[clinic_code_validator])
    description = models.CharField(max_length=500, blank=True, default="")

    # Address
    street = models.CharField(max_length=255, blank=True, default="")
    city = models.CharField(max_length=128, blank=True, default="")
    state = models.CharField(max_length=128, blank=True, default="")
    zip_code = models.CharField(max_length=16, blank=True, default="")
    country = models.CharField(max_length=64, blank=True, default="")

    # Contact
    phone = models.CharField(max_length=32, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    website = models.URLField(blank=True, default="")

    # Settings
    timezone = models.CharField(max_length=64, default=_default_timezone)
    currency = models.CharField(max_length=8, default=_default_currency)
    language = models.CharField(max_length=8, default=_default_language)
    working_hours = models.JSONField(default=dict, blank=True)

    # Hierarchy
    is_main_clinic = models.BooleanField(default=False, db_index=True)
    parent_clinic = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        related_name="sub_clinics",
        null=True,
        blank=True,
    )

    # Lifecycle
    is_active = models.BooleanField(default=True, db_index=True)
    deactivated_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "clinics_clinic"
        constraints = [
            models.UniqueConstraint(fields=["tenant", "code"], name="uq_clinic_tenant_code"),
        ]
        indexes = [
            models.Index(fields=["tenant", "is_active"]),
            models.Index(fields=["tenant", "is_main_clinic"]),
            models.Index(fields=["tenant", "parent_clinic"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"

    @property
    def hierarchy_level(self) -> str:
        return "main" if self.is_main_clinic else "sub"
