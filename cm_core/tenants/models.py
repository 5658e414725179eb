# backend/cm_core/tenants/models.py
import uuid

from django.db import models

from cm_core.common.models import TimeStampedModel


class TenantStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"
    SUSPENDED = "SUSPENDED", "Suspended"
    DELETED = "DELETED", "Deleted"


class Tenant(TimeStampedModel):
    """
    A clinic business: owns one Main Clinic, any number of Sub Clinics, and the
    warehouses and inventory shared between them.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    code = models.SlugField(max_length=64, unique=True)
    status = models.CharField(max_length=16, choices=TenantStatus.choices, default=TenantStatus.ACTIVE, db_index=True)

    # free-form settings owned by the platform (plan, region, ...)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "tenants_tenant"

    def __str__(self) -> str:
        return f"{self.name} ({self.code})"
