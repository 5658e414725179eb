# backend/cm_core/inventory/models.py
from __future__ import annotations

from decimal import Decimal

from django.core.validators import MinValueValidator, RegexValidator
from django.db import models

from cm_core.clinics.models import Clinic
from cm_core.common.models import ScopedModel
from cm_core.warehouses.models import Warehouse


class InventoryCategory(models.TextChoices):
    MEDICATIONS = "medications", "Medications"
    MEDICAL_DEVICES = "medical-devices", "Medical devices"
    CONSUMABLES = "consumables", "Consumables"
    EQUIPMENT = "equipment", "Equipment"
    LABORATORY = "laboratory", "Laboratory"
    OFFICE_SUPPLIES = "office-supplies", "Office supplies"
    OTHER = "other", "Other"


sku_validator = RegexValidator(
    regex=r"^[A-Z0-9\-_]+$",
    message="SKU can only contain uppercase letters, numbers, hyphens, and underscores",
)


class InventoryItem(ScopedModel):
    """
    Stock-keeping item owned by one clinic (clinic_id) and optionally assigned to other branches.

    current_stock is the pooled counter for shared warehouses and the legacy baseline for
    items created before per-branch tracking; non-shared stock lives in InventoryStock rows.
    """

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=32, choices=InventoryCategory.choices, db_index=True)
    sku = models.CharField(max_length=50, validators=[sku_validator])

    current_stock = models.PositiveIntegerField(default=0)
    minimum_stock = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        validators=[MinValueValidator(Decimal("0.00"))],
    )
    supplier = models.CharField(max_length=100, blank=True, default="")
    expiry_date = models.DateField(null=True, blank=True, db_index=True)

    assigned_branches = models.ManyToManyField(
        Clinic,
        through="InventoryItemBranch",
        related_name="assigned_inventory_items",
        blank=True,
    )

    class Meta:
        db_table = "inventory_item"
        constraints = [
            models.UniqueConstraint(fields=["tenant_id", "clinic_id", "sku"], name="uq_inventory_item_sku"),
            models.CheckConstraint(condition=models.Q(current_stock__gte=0), name="ck_inventory_item_stock_gte_0"),
        ]
        indexes = [
            models.Index(fields=["tenant_id", "clinic_id", "category"]),
            models.Index(fields=["tenant_id", "clinic_id", "name"]),
        ]

    def __str__(self) -> str:
        return f"{self.name} ({self.sku})"

    @property
    def total_value(self) -> Decimal:
        return Decimal(self.current_stock) * self.unit_price


class InventoryItemBranch(models.Model):
    item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name="branch_links")
    branch = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name="assigned_inventory")

    class Meta:
        db_table = "inventory_item_branch"
        constraints = [
            models.UniqueConstraint(fields=["item", "branch"], name="uq_inventory_item_branch"),
        ]


class InventoryBranchWarehouse(models.Model):
    """
    Which warehouse serves an item for a given branch.
    """

    item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name="branch_warehouse_links")
    branch = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name="+")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="item_links")

    class Meta:
        db_table = "inventory_branch_warehouse"
        constraints = [
            models.UniqueConstraint(fields=["item", "branch", "warehouse"], name="uq_inventory_branch_warehouse"),
        ]


class InventoryStock(models.Model):
    """
    Independent stock counter for one (item, branch, non-shared warehouse).
    """

    item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name="stock_entries")
    branch = models.ForeignKey(Clinic, on_delete=models.CASCADE, related_name="+")
    warehouse = models.ForeignKey(Warehouse, on_delete=models.PROTECT, related_name="stock_entries")
    stock = models.PositiveIntegerField(default=0)

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "inventory_stock"
        constraints = [
            models.UniqueConstraint(fields=["item", "branch", "warehouse"], name="uq_inventory_stock_key"),
            models.CheckConstraint(condition=models.Q(stock__gte=0), name="ck_inventory_stock_gte_0"),
        ]
