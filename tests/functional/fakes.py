"""Store doubles for exercising failure and echo paths."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from ordersync.logic.document_store import InMemoryDocumentStore
from ordersync.models.ordered_item import ItemUpdate, OrderedItem


class FailingStore(InMemoryDocumentStore):
    """Rejects ``batch_write`` with ``error`` without touching stored data."""

    def __init__(self, error: Optional[BaseException] = None) -> None:
        super().__init__()
        self.error = error
        self.batch_calls: list[list[ItemUpdate]] = []
        self.fetch_calls = 0
        self.fail_fetch = False

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        self.batch_calls.append(list(updates))
        if self.error is not None:
            raise self.error
        super().batch_write(collection_path, updates)

    def fetch_all(self, collection_path: str):
        self.fetch_calls += 1
        if self.fail_fetch:
            raise ConnectionError("store unreachable")
        return super().fetch_all(collection_path)


class LostResponseStore(InMemoryDocumentStore):
    """Applies the batch (pushing the echo to subscribers), then raises.

    Models a write that landed while its response was lost in transit.
    """

    def __init__(self, error: BaseException) -> None:
        super().__init__()
        self.error = error

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        super().batch_write(collection_path, updates)
        raise self.error


class SilentLandingStore(InMemoryDocumentStore):
    """Applies the batch without notifying subscribers, then raises."""

    def __init__(self, error: BaseException) -> None:
        super().__init__()
        self.error = error

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        notify = self._listeners.notify
        self._listeners.notify = lambda *a, **k: None  # type: ignore[method-assign]
        try:
            super().batch_write(collection_path, updates)
        finally:
            self._listeners.notify = notify  # type: ignore[method-assign]
        raise self.error


class InterleavingStore(InMemoryDocumentStore):
    """Runs ``before_write`` (another client's change) ahead of each batch."""

    def __init__(self, before_write: Callable[["InterleavingStore"], None], fail: Optional[BaseException] = None) -> None:
        super().__init__()
        self.before_write = before_write
        self.fail = fail

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        self.before_write(self)
        if self.fail is not None:
            raise self.fail
        super().batch_write(collection_path, updates)


BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_items(*ids: str, start: int = 0) -> list[OrderedItem]:
    """Items with contiguous orders and strictly increasing created_at."""
    return [
        OrderedItem(id=i, order=start + n, created_at=BASE_TIME + timedelta(minutes=n), payload={"title": i})
        for n, i in enumerate(ids)
    ]
