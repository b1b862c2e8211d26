"""SQLAlchemy engine management.

PostgreSQL in production, SQLite for local development and tests. No ORM
models are declared; repositories issue plain ``text()`` SQL through the
shared engine returned by ``get_engine()``.
"""

from __future__ import annotations

import logging
import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)

DEFAULT_DB_URL = "sqlite+pysqlite:///:memory:"


def _db_url() -> str:
    return os.getenv("TEST_DATABASE_URL") or os.getenv("DATABASE_URL") or DEFAULT_DB_URL


_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return the process-wide Engine.

    Without ``url`` the current Engine is reused, or one is built from the
    environment. A new Engine replaces the current one only when an explicit
    ``url`` differs. In-memory SQLite uses a StaticPool so every connection
    sees the same database.
    """
    global _ENGINE, _ENGINE_URL
    if url is None and _ENGINE is not None:
        return _ENGINE
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in resolved_url:
                kwargs["poolclass"] = StaticPool
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(resolved_url, **kwargs)
        _ENGINE_URL = resolved_url
        logger.info("db.engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


__all__ = ["get_engine", "DEFAULT_DB_URL"]
