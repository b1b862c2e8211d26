from __future__ import annotations

import logging
from typing import Callable

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text as sql_text

from ordersync.config import AppConfig, load_config
from ordersync.db.base import get_engine
from ordersync.db.migrations_runner import apply_migrations
from ordersync.http.problem import (
    handle_http_exception,
    handle_order_sync_error,
    handle_request_validation_error,
    handle_unexpected_error,
)
from ordersync.http.request_id import RequestIdMiddleware
from ordersync.logging_setup import configure_logging
from ordersync.logic.document_store import DocumentStore
from ordersync.logic.errors import OrderSyncError
from ordersync.logic.repository_items import SqlDocumentStore
from ordersync.middleware.cors import apply_cors
from ordersync.routes import api_router
from ordersync.routes.test_support import router as test_support_router

logger = logging.getLogger(__name__)


def _health_check() -> Callable[[], dict]:
    def check() -> dict:
        try:
            with get_engine().connect() as conn:
                conn.execute(sql_text("SELECT 1"))
            return {"status": "ok", "db": True}
        except Exception as e:
            logger.error("Health DB check failed", exc_info=True)
            return {"status": "degraded", "db": False, "reason": str(e)}

    return check


def create_app(
    config: AppConfig | None = None,
    store: DocumentStore | None = None,
    *,
    apply_schema: bool = True,
    include_test_support: bool = True,
) -> FastAPI:
    """Build the FastAPI application.

    ``store`` defaults to the SQL-backed store on the configured database.
    Migrations are applied during construction unless ``apply_schema`` is
    False, so the app never serves requests against a missing schema.
    """
    configure_logging()
    cfg = config or load_config()
    engine = get_engine(cfg.database.dsn)
    if apply_schema:
        try:
            apply_migrations(engine)
        except Exception:
            logger.error("Failed to apply migrations at startup", exc_info=True)
            raise

    app = FastAPI(title="Ordered Collection Sync", version="0.1.0")
    app.state.config = cfg
    app.state.document_store = store or SqlDocumentStore(engine)

    app.add_exception_handler(OrderSyncError, handle_order_sync_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    apply_cors(app)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router, prefix="/api/v1")
    if include_test_support:
        app.include_router(test_support_router)

    health_check = _health_check()

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return health_check()

    logger.info("app.created store=%s", type(app.state.document_store).__name__)
    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
