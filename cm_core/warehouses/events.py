# backend/cm_core/warehouses/events.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict
from uuid import UUID

from django.utils import timezone

from cm_core.common.events import EventBus

logger = logging.getLogger(__name__)

WAREHOUSE_CREATED = "warehouse.created"
WAREHOUSE_UPDATED = "warehouse.updated"
WAREHOUSE_DELETED = "warehouse.deleted"
WAREHOUSE_STATUS_CHANGED = "warehouse.statusChanged"
WAREHOUSE_BRANCHES_ASSIGNED = "warehouse.branchesAssigned"

EVENT_TYPES = (
    WAREHOUSE_CREATED,
    WAREHOUSE_UPDATED,
    WAREHOUSE_DELETED,
    WAREHOUSE_STATUS_CHANGED,
    WAREHOUSE_BRANCHES_ASSIGNED,
)


def warehouse_snapshot(warehouse) -> Dict[str, Any]:
    return {
        "id": str(warehouse.id),
        "name": warehouse.name,
        "type": warehouse.type,
        "status": warehouse.status,
        "is_shared": warehouse.is_shared,
        "assigned_branches": [str(b) for b in warehouse.branch_ids],
        "manager_user_id": warehouse.manager_user_id,
        "deleted_at": warehouse.deleted_at.isoformat() if warehouse.deleted_at else None,
    }


@dataclass(frozen=True)
class WarehouseEvent:
    type: str
    warehouse_id: UUID
    tenant_id: UUID
    warehouse: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=timezone.now)


class WarehouseEventBus(EventBus):
    """
    Warehouse notifications (created/updated/deleted/statusChanged/branchesAssigned).

    One bus per process is owned by the warehouses AppConfig; services get it injected.
    """

    def on(self, event_type: str, listener: Callable[[WarehouseEvent], None]) -> Callable[[], None]:
        """Subscribe and return an unsubscribe callable."""
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown warehouse event type: {event_type}")
        self.subscribe(event_type, listener)
        return lambda: self.unsubscribe(event_type, listener)

    def emit(self, event_type: str, warehouse, tenant_id: UUID) -> WarehouseEvent:
        event = WarehouseEvent(
            type=event_type,
            warehouse_id=warehouse.id,
            tenant_id=tenant_id,
            warehouse=warehouse_snapshot(warehouse),
        )
        logger.info("Warehouse event %s warehouse=%s tenant=%s", event_type, warehouse.id, tenant_id)
        self.publish(event_type, event)
        return event
