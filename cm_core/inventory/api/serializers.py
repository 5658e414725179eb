# backend/cm_core/inventory/api/serializers.py
from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers

from cm_core.inventory.ledger import StockOperation
from cm_core.inventory.models import InventoryCategory, InventoryItem, sku_validator


class BranchWarehouseSerializer(serializers.Serializer):
    branch_id = serializers.UUIDField()
    warehouse_id = serializers.UUIDField()


class StockEntrySerializer(serializers.Serializer):
    branch_id = serializers.UUIDField(read_only=True)
    warehouse_id = serializers.UUIDField(read_only=True)
    stock = serializers.IntegerField(read_only=True)


class InventoryItemSerializer(serializers.ModelSerializer):
    assigned_branches = serializers.SerializerMethodField()
    branch_warehouses = serializers.SerializerMethodField()
    stock_by_branch_warehouse = serializers.SerializerMethodField()
    total_value = serializers.DecimalField(max_digits=18, decimal_places=2, read_only=True)

    class Meta:
        model = InventoryItem
        fields = [
            "id",
            "tenant_id",
            "clinic_id",
            "name",
            "description",
            "category",
            "sku",
            "current_stock",
            "minimum_stock",
            "unit_price",
            "total_value",
            "supplier",
            "expiry_date",
            "assigned_branches",
            "branch_warehouses",
            "stock_by_branch_warehouse",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_assigned_branches(self, obj):
        return [str(link.branch_id) for link in obj.branch_links.all()]

    def get_branch_warehouses(self, obj):
        return [
            {"branch_id": str(link.branch_id), "warehouse_id": str(link.warehouse_id)}
            for link in obj.branch_warehouse_links.all()
        ]

    def get_stock_by_branch_warehouse(self, obj):
        return StockEntrySerializer(obj.stock_entries.all(), many=True).data


class InventoryItemCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=100)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True, default="")
    category = serializers.ChoiceField(choices=InventoryCategory.choices)
    sku = serializers.CharField(max_length=50)
    current_stock = serializers.IntegerField(min_value=0, default=0)
    minimum_stock = serializers.IntegerField(min_value=0, default=1)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), default=Decimal("0"))
    supplier = serializers.CharField(max_length=100, required=False, allow_blank=True, default="")
    expiry_date = serializers.DateField(required=False, allow_null=True, default=None)
    assigned_branches = serializers.ListField(child=serializers.UUIDField(), required=False, default=list)
    branch_warehouses = BranchWarehouseSerializer(many=True, required=False, default=list)

    def validate_sku(self, value: str) -> str:
        value = value.strip().upper()
        sku_validator(value)
        return value


class InventoryItemUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH). Stock is changed through the stock endpoint only.
    """
    name = serializers.CharField(min_length=2, max_length=100, required=False)
    description = serializers.CharField(max_length=500, required=False, allow_blank=True)
    category = serializers.ChoiceField(choices=InventoryCategory.choices, required=False)
    sku = serializers.CharField(max_length=50, required=False)
    minimum_stock = serializers.IntegerField(min_value=0, required=False)
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal("0"), required=False)
    supplier = serializers.CharField(max_length=100, required=False, allow_blank=True)
    expiry_date = serializers.DateField(required=False, allow_null=True)
    assigned_branches = serializers.ListField(child=serializers.UUIDField(), required=False)
    branch_warehouses = BranchWarehouseSerializer(many=True, required=False)

    def validate_sku(self, value: str) -> str:
        value = value.strip().upper()
        sku_validator(value)
        return value

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class StockUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)
    operation = serializers.ChoiceField(choices=StockOperation.choices)
    branch_id = serializers.UUIDField(required=False, allow_null=True, default=None)
    warehouse_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class CategoryStatSerializer(serializers.Serializer):
    category = serializers.CharField()
    count = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=18, decimal_places=2)


class InventoryStatsSerializer(serializers.Serializer):
    total_items = serializers.IntegerField()
    low_stock_items = serializers.IntegerField()
    out_of_stock_items = serializers.IntegerField()
    expired_items = serializers.IntegerField()
    total_value = serializers.DecimalField(max_digits=18, decimal_places=2)
    category_stats = CategoryStatSerializer(many=True)
