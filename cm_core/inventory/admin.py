# backend/cm_core/inventory/admin.py
from django.contrib import admin

from cm_core.inventory.models import InventoryBranchWarehouse, InventoryItem, InventoryItemBranch, InventoryStock


class InventoryItemBranchInline(admin.TabularInline):
    model = InventoryItemBranch
    extra = 0


class InventoryBranchWarehouseInline(admin.TabularInline):
    model = InventoryBranchWarehouse
    extra = 0


class InventoryStockInline(admin.TabularInline):
    model = InventoryStock
    extra = 0
    readonly_fields = ("updated_at",)


@admin.register(InventoryItem)
class InventoryItemAdmin(admin.ModelAdmin):
    list_display = ("name", "sku", "category", "current_stock", "minimum_stock", "tenant_id", "clinic_id")
    list_filter = ("category",)
    search_fields = ("name", "sku", "supplier")
    inlines = [InventoryItemBranchInline, InventoryBranchWarehouseInline, InventoryStockInline]
