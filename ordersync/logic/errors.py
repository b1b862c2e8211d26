"""Error taxonomy for ordered collection sync.

Logic modules raise these; the HTTP edge maps them to problem+json via
``ordersync.http.error_mapping``.
"""

from __future__ import annotations


class OrderSyncError(Exception):
    """Base class for all ordered collection sync errors."""

    code = "ORDER_SYNC_ERROR"


class InvalidMoveError(OrderSyncError):
    """A move references an id that is not present in the list."""

    code = "ORDER_MOVE_INVALID"

    def __init__(self, source_id: str, target_id: str, missing: list[str]) -> None:
        self.source_id = source_id
        self.target_id = target_id
        self.missing = list(missing)
        super().__init__(f"move references unknown item id(s): {', '.join(self.missing)}")


class PersistenceError(OrderSyncError):
    """The atomic batch write was rejected as a unit.

    ``ambiguous`` is True when the outcome is unknown (timeout, dropped
    connection): the write may have landed even though the call failed.
    """

    code = "ORDER_PERSIST_FAILED"

    def __init__(self, message: str, *, ambiguous: bool = False, cause: BaseException | None = None) -> None:
        self.ambiguous = bool(ambiguous)
        self.cause = cause
        super().__init__(message)


class ConcurrentModificationAmbiguity(OrderSyncError):
    """A remote push arrived while a commit was in flight and did not match it."""

    code = "ORDER_CONCURRENT_MODIFICATION"

    def __init__(self, collection_path: str, remote_ids: list[str]) -> None:
        self.collection_path = collection_path
        self.remote_ids = list(remote_ids)
        super().__init__(f"remote change to {collection_path} observed during commit")


class CommitInFlightError(OrderSyncError):
    """A second reorder was attempted while one is still committing."""

    code = "ORDER_COMMIT_IN_FLIGHT"

    def __init__(self, collection_path: str) -> None:
        self.collection_path = collection_path
        super().__init__(f"a reorder of {collection_path} is already committing")


class DocumentNotFoundError(OrderSyncError):
    """A store operation referenced a document that does not exist."""

    code = "ORDER_ITEM_NOT_FOUND"

    def __init__(self, collection_path: str, item_id: str) -> None:
        self.collection_path = collection_path
        self.item_id = item_id
        super().__init__(f"{collection_path}/{item_id} not found")


__all__ = [
    "OrderSyncError",
    "InvalidMoveError",
    "PersistenceError",
    "ConcurrentModificationAmbiguity",
    "CommitInFlightError",
    "DocumentNotFoundError",
]
