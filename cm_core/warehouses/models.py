# backend/cm_core/warehouses/models.py
from __future__ import annotations

from django.conf import settings
from django.core.validators import MinLengthValidator
from django.db import models

from cm_core.clinics.models import Clinic
from cm_core.common.models import TenantOwnedModel


class WarehouseType(models.TextChoices):
    MAIN = "MAIN", "Main"
    SUB = "SUB", "Sub"


class WarehouseStatus(models.TextChoices):
    ACTIVE = "ACTIVE", "Active"
    INACTIVE = "INACTIVE", "Inactive"


class WarehouseQuerySet(models.QuerySet):
    def alive(self):
        return self.filter(deleted_at__isnull=True)

    def mains(self):
        return self.filter(type=WarehouseType.MAIN)

    def for_branch(self, branch_id):
        return self.filter(branch_links__branch_id=branch_id)


class Warehouse(TenantOwnedModel):
    """
    Storage location shared by one or more branches of a tenant.

    Invariant: a branch is linked to at most one alive (deleted_at IS NULL) MAIN warehouse.
    Branch membership lives in WarehouseBranch rows, so the rule is checked in
    WarehouseService under row locks instead of a unique index.
    """

    name = models.CharField(max_length=200, validators=[MinLengthValidator(2)])
    type = models.CharField(max_length=8, choices=WarehouseType.choices, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=WarehouseStatus.choices,
        default=WarehouseStatus.ACTIVE,
        db_index=True,
    )

    # shared: one pooled counter (InventoryItem.current_stock) for every branch using it
    is_shared = models.BooleanField(default=False)

    manager_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="managed_warehouses",
        null=True,
        blank=True,
    )

    branches = models.ManyToManyField(Clinic, through="WarehouseBranch", related_name="warehouses")

    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = WarehouseQuerySet.as_manager()

    class Meta:
        db_table = "warehouses_warehouse"
        indexes = [
            models.Index(fields=["tenant_id", "type"]),
            models.Index(fields=["tenant_id", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} [{self.type}]"

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def branch_ids(self) -> list:
        return [link.branch_id for link in self.branch_links.all()]


class WarehouseBranch(models.Model):
    """
    Explicit warehouse <-> branch assignment row.
    """

    warehouse = models.ForeignKey(Warehouse, on_delete=models.CASCADE, related_name="branch_links")
    branch = models.ForeignKey(Clinic, on_delete=models.PROTECT, related_name="warehouse_links")
    tenant_id = models.UUIDField(db_index=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "warehouses_warehouse_branch"
        constraints = [
            models.UniqueConstraint(fields=["warehouse", "branch"], name="uq_warehouse_branch"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "branch"]),
        ]
