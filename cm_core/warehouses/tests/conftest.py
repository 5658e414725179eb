import pytest

from cm_core.warehouses import events as ev
from cm_core.warehouses.events import WarehouseEventBus
from cm_core.warehouses.models import WarehouseType
from cm_core.warehouses.services import WarehouseService


@pytest.fixture
def bus():
    return WarehouseEventBus()


@pytest.fixture
def recorded(bus):
    """
    Every warehouse event published on the test bus, in order.
    """
    seen = []
    for event_type in ev.EVENT_TYPES:
        bus.on(event_type, seen.append)
    return seen


@pytest.fixture
def service(bus):
    return WarehouseService(events=bus)


@pytest.fixture
def make_warehouse(tenant, service):
    def _make(*branches, type=WarehouseType.MAIN, name=None, **kwargs):
        return service.create(
            tenant_id=tenant.id,
            name=name or f"{type.title()} store",
            type=type,
            assigned_branches=[b.id for b in branches],
            **kwargs,
        )

    return _make
