"""Central mapping of domain errors to problem+json codes and HTTP statuses.

Single source of truth for the HTTP edge; route modules and exception
handlers import from here instead of hardcoding statuses or code strings.
"""

from __future__ import annotations

from ordersync.logic.errors import (
    CommitInFlightError,
    ConcurrentModificationAmbiguity,
    DocumentNotFoundError,
    InvalidMoveError,
    OrderSyncError,
    PersistenceError,
)

ERROR_MAP: dict[type[OrderSyncError], dict] = {
    InvalidMoveError: {"code": InvalidMoveError.code, "status": 422, "title": "Invalid Move"},
    DocumentNotFoundError: {"code": DocumentNotFoundError.code, "status": 404, "title": "Not Found"},
    CommitInFlightError: {"code": CommitInFlightError.code, "status": 409, "title": "Conflict"},
    ConcurrentModificationAmbiguity: {"code": ConcurrentModificationAmbiguity.code, "status": 409, "title": "Conflict"},
    PersistenceError: {"code": PersistenceError.code, "status": 503, "title": "Service Unavailable"},
}

PRECONDITION_ERROR_MAP = {
    "mismatch": {"code": "PRE_IF_MATCH_ETAG_MISMATCH", "status": 412, "title": "Precondition Failed"},
}


def lookup(exc: OrderSyncError) -> dict:
    for cls in type(exc).__mro__:
        if cls in ERROR_MAP:
            return ERROR_MAP[cls]
    return {"code": exc.code, "status": 500, "title": "Internal Server Error"}


__all__ = ["ERROR_MAP", "PRECONDITION_ERROR_MAP", "lookup"]
