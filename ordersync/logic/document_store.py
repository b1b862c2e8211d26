"""Backing document store contract and the in-memory implementation.

Stores hold collections of ``OrderedItem`` keyed by collection path. Reads
are unordered; callers apply ``order_model.sort_items``. ``batch_write`` is
all-or-nothing. Subscribers receive the full collection after every
successful mutation, including mutations made by the subscriber itself.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Protocol, Sequence
import logging
import threading

from ordersync.logic.errors import DocumentNotFoundError
from ordersync.models.ordered_item import ItemUpdate, OrderedItem

logger = logging.getLogger(__name__)

ChangeListener = Callable[[List[OrderedItem]], None]
Unsubscribe = Callable[[], None]


class DocumentStore(Protocol):
    def fetch_all(self, collection_path: str) -> list[OrderedItem]: ...

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None: ...

    def subscribe(self, collection_path: str, on_change: ChangeListener) -> Unsubscribe: ...

    def insert(self, collection_path: str, item: OrderedItem) -> OrderedItem: ...

    def delete(self, collection_path: str, item_id: str) -> None: ...


def apply_fields(item: OrderedItem, fields: Dict[str, Any]) -> OrderedItem:
    """Return ``item`` with ``fields`` applied; unknown keys land in ``payload``."""
    update: Dict[str, Any] = {}
    payload = dict(item.payload)
    for key, value in fields.items():
        if key == "order":
            update["order"] = int(value)
        elif key == "created_at":
            update["created_at"] = value
        else:
            payload[key] = value
    update["payload"] = payload
    return item.model_copy(update=update)


class ListenerRegistry:
    """Per-collection change listeners shared by store implementations."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[ChangeListener]] = {}

    def add(self, collection_path: str, on_change: ChangeListener) -> Unsubscribe:
        with self._lock:
            self._listeners.setdefault(collection_path, []).append(on_change)

        def unsubscribe() -> None:
            with self._lock:
                current = self._listeners.get(collection_path, [])
                if on_change in current:
                    current.remove(on_change)

        return unsubscribe

    def notify(self, collection_path: str, snapshot: List[OrderedItem]) -> None:
        with self._lock:
            listeners = list(self._listeners.get(collection_path, []))
        for listener in listeners:
            try:
                listener(list(snapshot))
            except Exception:
                # One broken subscriber must not block delivery to the rest
                logger.error("store.listener_failed collection=%s", collection_path, exc_info=True)

    def clear(self) -> None:
        with self._lock:
            self._listeners.clear()


class InMemoryDocumentStore:
    """Process-local store used for development and tests."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, OrderedItem]] = {}
        self._listeners = ListenerRegistry()

    def fetch_all(self, collection_path: str) -> list[OrderedItem]:
        with self._lock:
            return list(self._collections.get(collection_path, {}).values())

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        with self._lock:
            docs = self._collections.get(collection_path, {})
            # Validate the whole batch before touching anything
            for upd in updates:
                if upd.id not in docs:
                    raise DocumentNotFoundError(collection_path, upd.id)
            for upd in updates:
                docs[upd.id] = apply_fields(docs[upd.id], upd.fields)
            snapshot = list(docs.values())
        logger.info("store.batch_write collection=%s updates=%s", collection_path, len(updates))
        self._listeners.notify(collection_path, snapshot)

    def subscribe(self, collection_path: str, on_change: ChangeListener) -> Unsubscribe:
        return self._listeners.add(collection_path, on_change)

    def insert(self, collection_path: str, item: OrderedItem) -> OrderedItem:
        with self._lock:
            self._collections.setdefault(collection_path, {})[item.id] = item
            snapshot = list(self._collections[collection_path].values())
        self._listeners.notify(collection_path, snapshot)
        return item

    def delete(self, collection_path: str, item_id: str) -> None:
        with self._lock:
            docs = self._collections.get(collection_path, {})
            if item_id not in docs:
                raise DocumentNotFoundError(collection_path, item_id)
            del docs[item_id]
            snapshot = list(docs.values())
        self._listeners.notify(collection_path, snapshot)

    def reset(self) -> None:
        with self._lock:
            self._collections.clear()
        self._listeners.clear()


__all__ = [
    "ChangeListener",
    "Unsubscribe",
    "DocumentStore",
    "ListenerRegistry",
    "InMemoryDocumentStore",
    "apply_fields",
]
