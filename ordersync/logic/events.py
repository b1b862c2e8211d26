"""Domain events for item, reorder and visit plan flows.

Events are logged and kept in a bounded in-process buffer so tests and the
test-support routes can observe what a request did.
"""

from __future__ import annotations

from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List
import logging

logger = logging.getLogger(__name__)

ITEM_CREATED = "item.created"
ITEM_DELETED = "item.deleted"
ORDER_COMMITTED = "order.committed"
ORDER_ROLLED_BACK = "order.rolled_back"
VISIT_ORDER_CHANGED = "visit.order_changed"

EVENT_BUFFER_LIMIT = 500
EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_LIMIT)


def publish(event_type: str, collection: str, **fields: Any) -> Dict[str, Any]:
    event = {
        "type": event_type,
        "collection": collection,
        "at": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "payload": fields,
    }
    logger.info("event_publish type=%s collection=%s payload=%s", event_type, collection, fields)
    EVENT_BUFFER.append(event)
    return event


def get_buffered_events(clear: bool = True, event_type: str | None = None) -> List[Dict[str, Any]]:
    events = [e for e in EVENT_BUFFER if event_type is None or e["type"] == event_type]
    if clear:
        EVENT_BUFFER.clear()
    return events


__all__ = [
    "ITEM_CREATED",
    "ITEM_DELETED",
    "ORDER_COMMITTED",
    "ORDER_ROLLED_BACK",
    "VISIT_ORDER_CHANGED",
    "EVENT_BUFFER",
    "publish",
    "get_buffered_events",
]
