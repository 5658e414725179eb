# backend/cm_core/warehouses/admin.py
from django.contrib import admin

from cm_core.warehouses.models import Warehouse, WarehouseBranch


class WarehouseBranchInline(admin.TabularInline):
    model = WarehouseBranch
    extra = 0
    readonly_fields = ("created_at",)


@admin.register(Warehouse)
class WarehouseAdmin(admin.ModelAdmin):
    list_display = ("name", "type", "status", "is_shared", "tenant_id", "deleted_at", "updated_at")
    list_filter = ("type", "status", "is_shared")
    search_fields = ("name",)
    readonly_fields = ("id", "created_at", "updated_at")
    inlines = [WarehouseBranchInline]

    def get_queryset(self, request):
        return super().get_queryset(request).prefetch_related("branch_links")
