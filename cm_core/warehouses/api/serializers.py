# backend/cm_core/warehouses/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cm_core.warehouses.models import Warehouse, WarehouseStatus, WarehouseType


class AssignedBranchSerializer(serializers.Serializer):
    id = serializers.UUIDField(source="branch_id", read_only=True)
    name = serializers.CharField(source="branch.name", read_only=True)
    code = serializers.CharField(source="branch.code", read_only=True)


class WarehouseSerializer(serializers.ModelSerializer):
    assigned_branches = AssignedBranchSerializer(source="branch_links", many=True, read_only=True)
    manager_user_id = serializers.IntegerField(read_only=True, allow_null=True)
    item_count = serializers.SerializerMethodField()

    class Meta:
        model = Warehouse
        fields = [
            "id",
            "tenant_id",
            "name",
            "type",
            "status",
            "is_shared",
            "assigned_branches",
            "manager_user_id",
            "item_count",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_item_count(self, obj) -> int:
        count = getattr(obj, "item_count", None)
        if count is None:
            count = obj.item_links.values("item_id").distinct().count()
        return count


class WarehouseCreateSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    type = serializers.ChoiceField(choices=WarehouseType.choices)
    assigned_branches = serializers.ListField(child=serializers.UUIDField(), allow_empty=True)
    status = serializers.ChoiceField(choices=WarehouseStatus.choices, required=False, default=WarehouseStatus.ACTIVE)
    manager_user_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    is_shared = serializers.BooleanField(required=False, default=False)


class WarehouseUpdateSerializer(serializers.Serializer):
    """
    Partial update contract (PATCH).
    """
    name = serializers.CharField(min_length=2, max_length=200, required=False)
    type = serializers.ChoiceField(choices=WarehouseType.choices, required=False)
    assigned_branches = serializers.ListField(child=serializers.UUIDField(), required=False, allow_empty=True)
    status = serializers.ChoiceField(choices=WarehouseStatus.choices, required=False)
    manager_user_id = serializers.IntegerField(required=False, allow_null=True)
    is_shared = serializers.BooleanField(required=False)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("At least one field is required.")
        return attrs


class WarehouseStatusSerializer(serializers.Serializer):
    status = serializers.CharField()
