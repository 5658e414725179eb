# backend/cm_core/warehouses/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema, extend_schema_view
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response

from cm_core.common.api.pagination import paginate
from cm_core.common.permissions import WarehousePermission
from cm_core.iam.scope import require_scope
from cm_core.inventory.api.serializers import InventoryItemSerializer
from cm_core.warehouses.api.filters import WarehouseFilter
from cm_core.warehouses.api.serializers import (
    WarehouseCreateSerializer,
    WarehouseSerializer,
    WarehouseStatusSerializer,
    WarehouseUpdateSerializer,
)
from cm_core.warehouses.apps import get_event_bus
from cm_core.warehouses.models import Warehouse
from cm_core.warehouses.selectors import items_in_warehouse, warehouse_by_id, warehouses_for_tenant
from cm_core.warehouses.services import WarehouseService, WarehouseUpdate


def _actor_id(request) -> int | None:
    return request.user.id if request.user and request.user.is_authenticated else None


def _service() -> WarehouseService:
    return WarehouseService(events=get_event_bus())


LIST_PARAMS = [
    OpenApiParameter("search", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
    OpenApiParameter("type", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=["MAIN", "SUB"]),
    OpenApiParameter("status", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False, enum=["ACTIVE", "INACTIVE"]),
    OpenApiParameter(
        "branch_id",
        OpenApiTypes.UUID,
        OpenApiParameter.QUERY,
        required=False,
        description="Defaults to the current clinic (X-Clinic-Id).",
    ),
    OpenApiParameter("ordering", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False),
]


@extend_schema_view(
    list=extend_schema(tags=["Warehouses"], parameters=LIST_PARAMS, responses={200: WarehouseSerializer(many=True)}),
    retrieve=extend_schema(tags=["Warehouses"], responses={200: WarehouseSerializer}),
    create=extend_schema(tags=["Warehouses"], request=WarehouseCreateSerializer, responses={201: WarehouseSerializer}),
    partial_update=extend_schema(tags=["Warehouses"], request=WarehouseUpdateSerializer, responses={200: WarehouseSerializer}),
    destroy=extend_schema(tags=["Warehouses"], responses={204: None}),
    set_status=extend_schema(tags=["Warehouses"], request=WarehouseStatusSerializer, responses={200: WarehouseSerializer}),
    items=extend_schema(
        tags=["Warehouses"],
        parameters=[OpenApiParameter("search", OpenApiTypes.STR, OpenApiParameter.QUERY, required=False)],
        responses={200: InventoryItemSerializer(many=True)},
    ),
)
class WarehouseViewSet(viewsets.ViewSet):
    """
    Tenant warehouses. Each branch has at most one alive MAIN warehouse.
    """
    permission_classes = [WarehousePermission]

    serializer_class = WarehouseSerializer
    queryset = Warehouse.objects.none()

    def list(self, request):
        scope = require_scope(request)

        params = request.query_params.copy()
        if not params.get("branch_id"):
            params["branch_id"] = str(scope.clinic_id)

        fs = WarehouseFilter(params, queryset=warehouses_for_tenant(tenant_id=scope.tenant_id), request=request)
        if not fs.is_valid():
            raise ValidationError(fs.errors)
        return paginate(request, fs.qs, WarehouseSerializer)

    def retrieve(self, request, pk=None):
        scope = require_scope(request)
        wh = warehouse_by_id(tenant_id=scope.tenant_id, warehouse_id=UUID(str(pk)))
        return Response(WarehouseSerializer(wh).data, status=status.HTTP_200_OK)

    def create(self, request):
        scope = require_scope(request)
        ser = WarehouseCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        wh = _service().create(
            tenant_id=scope.tenant_id,
            actor_user_id=_actor_id(request),
            clinic_id=scope.clinic_id,
            **ser.validated_data,
        )
        wh = warehouse_by_id(tenant_id=scope.tenant_id, warehouse_id=wh.id)
        return Response(WarehouseSerializer(wh).data, status=status.HTTP_201_CREATED)

    def partial_update(self, request, pk=None):
        scope = require_scope(request)
        ser = WarehouseUpdateSerializer(data=request.data, partial=True)
        ser.is_valid(raise_exception=True)

        wh = _service().update(
            tenant_id=scope.tenant_id,
            warehouse_id=UUID(str(pk)),
            patch=WarehouseUpdate(**ser.validated_data),
            actor_user_id=_actor_id(request),
            clinic_id=scope.clinic_id,
        )
        wh = warehouse_by_id(tenant_id=scope.tenant_id, warehouse_id=wh.id)
        return Response(WarehouseSerializer(wh).data, status=status.HTTP_200_OK)

    def destroy(self, request, pk=None):
        scope = require_scope(request)
        _service().soft_delete(
            tenant_id=scope.tenant_id,
            warehouse_id=UUID(str(pk)),
            actor_user_id=_actor_id(request),
            clinic_id=scope.clinic_id,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)

    @action(detail=True, methods=["patch"], url_path="status")
    def set_status(self, request, pk=None):
        scope = require_scope(request)
        ser = WarehouseStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        wh = _service().set_status(
            tenant_id=scope.tenant_id,
            warehouse_id=UUID(str(pk)),
            status=ser.validated_data["status"],
            actor_user_id=_actor_id(request),
            clinic_id=scope.clinic_id,
        )
        wh = warehouse_by_id(tenant_id=scope.tenant_id, warehouse_id=wh.id)
        return Response(WarehouseSerializer(wh).data, status=status.HTTP_200_OK)

    @action(detail=True, methods=["get"], url_path="items")
    def items(self, request, pk=None):
        scope = require_scope(request)
        wh = warehouse_by_id(tenant_id=scope.tenant_id, warehouse_id=UUID(str(pk)))
        qs = items_in_warehouse(
            tenant_id=scope.tenant_id,
            warehouse_id=wh.id,
            q=request.query_params.get("search") or None,
        ).prefetch_related("branch_links", "branch_warehouse_links", "stock_entries")
        return paginate(request, qs, InventoryItemSerializer)
