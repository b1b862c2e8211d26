"""Database bootstrap utilities.

Exposes the shared engine accessor and the SQL migrations runner. The DB
layer does not leak ORM models into route handlers.
"""

from ordersync.db.base import get_engine
from ordersync.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "apply_migrations",
]
