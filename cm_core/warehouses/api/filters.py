# backend/cm_core/warehouses/api/filters.py
import django_filters as df

from cm_core.warehouses.models import Warehouse, WarehouseStatus, WarehouseType


class WarehouseFilter(df.FilterSet):
    search = df.CharFilter(field_name="name", lookup_expr="icontains")
    type = df.ChoiceFilter(choices=WarehouseType.choices)
    status = df.ChoiceFilter(choices=WarehouseStatus.choices)
    branch_id = df.UUIDFilter(field_name="branch_links__branch_id", distinct=True)
    is_shared = df.BooleanFilter()

    ordering = df.OrderingFilter(
        fields=(
            ("created_at", "created_at"),
            ("name", "name"),
            ("type", "type"),
            ("status", "status"),
        )
    )

    class Meta:
        model = Warehouse
        fields = ["search", "type", "status", "branch_id", "is_shared"]
