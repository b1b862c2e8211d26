"""Persistence committer: one atomic batch write per reorder.

The write set is every item whose ``order`` differs from its last known
value, or the full list when ``write_scope="all"``. Store calls run in a
worker thread so the event loop stays responsive while the write is in
flight. Failures surface as ``PersistenceError``; nothing is retried here.
"""

from __future__ import annotations

from typing import Callable, Sequence
import logging

import anyio.to_thread

from ordersync.logic.document_store import DocumentStore
from ordersync.logic.errors import PersistenceError
from ordersync.logic.order_model import order_map
from ordersync.models.ordered_item import ItemUpdate, OrderedItem

logger = logging.getLogger(__name__)

WRITE_SCOPES = ("changed", "all")

# Exceptions whose outcome is unknown: the write may or may not have landed
AMBIGUOUS_ERRORS: tuple[type[BaseException], ...] = (TimeoutError, ConnectionError)


def build_updates(
    previous: Sequence[OrderedItem],
    reduced: Sequence[OrderedItem],
    write_scope: str = "changed",
) -> list[ItemUpdate]:
    """Return order updates needed to move the store from ``previous`` to ``reduced``."""
    before = order_map(previous)
    updates: list[ItemUpdate] = []
    for item in reduced:
        if write_scope == "all" or before.get(item.id) != int(item.order):
            updates.append(ItemUpdate(id=item.id, fields={"order": int(item.order)}))
    return updates


class PersistenceCommitter:
    def __init__(
        self,
        store: DocumentStore,
        write_scope: str = "changed",
        is_ambiguous: Callable[[BaseException], bool] | None = None,
    ) -> None:
        if write_scope not in WRITE_SCOPES:
            raise ValueError(f"write_scope must be one of {WRITE_SCOPES}")
        self.store = store
        self.write_scope = write_scope
        self._is_ambiguous = is_ambiguous or (lambda exc: isinstance(exc, AMBIGUOUS_ERRORS))

    async def commit(
        self,
        collection_path: str,
        previous: Sequence[OrderedItem],
        reduced: Sequence[OrderedItem],
    ) -> None:
        updates = build_updates(previous, reduced, self.write_scope)
        if not updates:
            logger.info("reorder.commit_skipped collection=%s reason=no_changes", collection_path)
            return
        logger.info("reorder.commit collection=%s updates=%s", collection_path, len(updates))
        try:
            await anyio.to_thread.run_sync(self.store.batch_write, collection_path, updates)
        except Exception as exc:
            ambiguous = self._is_ambiguous(exc)
            logger.error(
                "reorder.commit_failed collection=%s ambiguous=%s",
                collection_path,
                ambiguous,
                exc_info=True,
            )
            raise PersistenceError(
                f"batch write to {collection_path} failed: {exc}",
                ambiguous=ambiguous,
                cause=exc,
            ) from exc

    async def fetch(self, collection_path: str) -> list[OrderedItem]:
        return await anyio.to_thread.run_sync(self.store.fetch_all, collection_path)


__all__ = ["WRITE_SCOPES", "AMBIGUOUS_ERRORS", "build_updates", "PersistenceCommitter"]
