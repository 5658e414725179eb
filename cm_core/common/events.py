# backend/cm_core/common/events.py
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

Handler = Callable[[Any], None]


class EventBus:
    """
    In-process pub/sub owned by whoever constructs it.

    There is no module-level registry: services receive the bus they publish to,
    and tests build their own bus with recording listeners.
    Delivery is best-effort; a failing listener is logged and skipped.
    """

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Handler]] = defaultdict(list)

    def subscribe(self, event_type: str, handler: Handler) -> Handler:
        self._listeners[event_type].append(handler)
        return handler

    def unsubscribe(self, event_type: str, handler: Handler) -> None:
        handlers = self._listeners.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, event_type: str, event: Any) -> None:
        for handler in list(self._listeners.get(event_type, [])):
            try:
                handler(event)
            except Exception:
                logger.exception("Event listener failed for %s", event_type)
