# backend/cm_core/inventory/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from cm_core.common.api.pagination import paginate
from cm_core.common.permissions import InventoryPermission
from cm_core.iam.scope import require_scope
from cm_core.inventory.api.serializers import (
    InventoryItemCreateSerializer,
    InventoryItemSerializer,
    InventoryItemUpdateSerializer,
    InventoryStatsSerializer,
    StockUpdateSerializer,
)
from cm_core.inventory.models import InventoryItem
from cm_core.inventory.selectors import (
    expired_items,
    expiring_items,
    get_visible_item,
    inventory_stats,
    low_stock_items,
    search_items,
)
from cm_core.inventory.services import InventoryService, ItemDetails


def _actor_id(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _uuid_param(request, name: str) -> UUID | None:
    raw = request.query_params.get(name) or None
    if not raw:
        return None
    try:
        return UUID(str(raw))
    except ValueError:
        raise ValidationError({name: f"Invalid {name} (UUID expected)"})


LIST_PARAMS = [
    OpenApiParameter("category", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
    OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=["low_stock", "out_of_stock"]),
    OpenApiParameter("branch_id", OpenApiTypes.UUID, OpenApiParameter.QUERY, required=False),
    OpenApiParameter("search", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
]


@extend_schema_view(
    list=extend_schema(tags=["Inventory"], parameters=LIST_PARAMS, responses={200: InventoryItemSerializer(many=True)}),
    retrieve=extend_schema(tags=["Inventory"], responses={200: InventoryItemSerializer}),
    create=extend_schema(tags=["Inventory"], request=InventoryItemCreateSerializer, responses={201: InventoryItemSerializer}),
    partial_update=extend_schema(tags=["Inventory"], request=InventoryItemUpdateSerializer, responses={200: InventoryItemSerializer}),
    destroy=extend_schema(tags=["Inventory"], responses={204: None}),
    update_stock=extend_schema(tags=["Inventory"], request=StockUpdateSerializer, responses={200: InventoryItemSerializer}),
    low_stock=extend_schema(tags=["Inventory"], responses={200: InventoryItemSerializer(many=True)}),
    expired=extend_schema(tags=["Inventory"], responses={200: InventoryItemSerializer(many=True)}),
    expiring=extend_schema(
        tags=["Inventory"],
        parameters=[OpenApiParameter("days", OpenApiTypes.INT, OpenApiParameter.QUERY, required=False)],
        responses={200: InventoryItemSerializer(many=True)},
    ),
    stats=extend_schema(tags=["Inventory"], responses={200: InventoryStatsSerializer}),
)
class InventoryItemViewSet(viewsets.ViewSet):
    """
    Clinic inventory. Reads cover items owned by or assigned to the current clinic;
    writes and reports are limited to items the clinic owns.
    """
    permission_classes = [InventoryPermission]

    serializer_class = InventoryItemSerializer
    queryset = InventoryItem.objects.none()

    def list(self, request):
        scope = require_scope(request)
        qs = search_items(
            tenant_id=scope.tenant_id,
            clinic_id=scope.clinic_id,
            category=request.query_params.get("category") or None,
            stock_status=request.query_params.get("status") or None,
            branch_id=_uuid_param(request, "branch_id"),
            q=request.query_params.get("search") or None,
        )
        return paginate(request, qs, InventoryItemSerializer)

    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        item = get_visible_item(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, item_id=UUID(str(pk)))
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    def create(self, request):
        scope = require_scope(request)
        ser = InventoryItemCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        assigned_branches = data.pop("assigned_branches", [])
        branch_warehouses = data.pop("branch_warehouses", [])

        item = InventoryService.create_item(
            tenant_id=scope.tenant_id,
            clinic_id=scope.clinic_id,
            actor_user_id=_actor_id(request),
            details=ItemDetails(**data),
            assigned_branches=assigned_branches,
            branch_warehouses=branch_warehouses,
        )
        item = get_visible_item(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, item_id=item.id)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        scope = require_scope(request)
        ser = InventoryItemUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        item = InventoryService.update_item(
            tenant_id=scope.tenant_id,
            clinic_id=scope.clinic_id,
            actor_user_id=_actor_id(request),
            item_id=UUID(str(pk)),
            data=dict(ser.validated_data),
        )
        item = get_visible_item(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, item_id=item.id)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        scope = require_scope(request)
        InventoryService.delete_item(
            tenant_id=scope.tenant_id,
            clinic_id=scope.clinic_id,
            actor_user_id=_actor_id(request),
            item_id=UUID(str(pk)),
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="stock")
    def update_stock(self, request, pk=None):
        scope = require_scope(request)
        ser = StockUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        item = InventoryService.update_stock(
            tenant_id=scope.tenant_id,
            clinic_id=scope.clinic_id,
            actor_user_id=_actor_id(request),
            item_id=UUID(str(pk)),
            **ser.validated_data,
        )
        item = get_visible_item(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, item_id=item.id)
        return Response(InventoryItemSerializer(item).data, status=status.HTTP_200_OK)

    @action(detail=False, methods=["get"], url_path="low-stock")
    def low_stock(self, request):
        scope = require_scope(request)
        qs = low_stock_items(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        return paginate(request, qs.prefetch_related("branch_links", "branch_warehouse_links", "stock_entries"), InventoryItemSerializer)

    @action(detail=False, methods=["get"], url_path="expired")
    def expired(self, request):
        scope = require_scope(request)
        qs = expired_items(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        return paginate(request, qs.prefetch_related("branch_links", "branch_warehouse_links", "stock_entries"), InventoryItemSerializer)

    @action(detail=False, methods=["get"], url_path="expiring")
    def expiring(self, request):
        scope = require_scope(request)
        raw_days = request.query_params.get("days")
        days = None
        if raw_days:
            try:
                days = int(raw_days)
            except ValueError:
                raise ValidationError({"days": "days must be an integer"})
            if days < 0:
                raise ValidationError({"days": "days must be zero or positive"})

        qs = expiring_items(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id, days=days)
        return paginate(request, qs.prefetch_related("branch_links", "branch_warehouse_links", "stock_entries"), InventoryItemSerializer)

    @action(detail=False, methods=["get"], url_path="stats")
    def stats(self, request):
        scope = require_scope(request)
        data = inventory_stats(tenant_id=scope.tenant_id, clinic_id=scope.clinic_id)
        return Response(InventoryStatsSerializer(data).data, status=status.HTTP_200_OK)
