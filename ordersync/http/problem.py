"""Problem+JSON utilities and global exception handlers.

Defines the RFC 7807 media type and handler callables registered by
``create_app`` so every error leaves the service as
``application/problem+json`` with a stable ``code``.
"""

from __future__ import annotations

from typing import Any
import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ordersync.http.error_mapping import PRECONDITION_ERROR_MAP, lookup
from ordersync.logic.errors import OrderSyncError, PersistenceError

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


def problem_response(
    status: int,
    title: str,
    detail: str,
    code: str,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    body = {"type": "about:blank", "title": title, "status": status, "detail": detail, "code": code, **extra}
    return JSONResponse(body, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=headers)


def problem_etag_mismatch(current_etag: str) -> JSONResponse:
    entry = PRECONDITION_ERROR_MAP["mismatch"]
    return problem_response(
        entry["status"],
        entry["title"],
        "If-Match does not match the current collection order",
        entry["code"],
        headers={"ETag": current_etag},
    )


async def handle_order_sync_error(request: Request, exc: OrderSyncError) -> JSONResponse:  # noqa: D401
    entry = lookup(exc)
    extra: dict[str, Any] = {}
    if isinstance(exc, PersistenceError):
        extra["ambiguous"] = exc.ambiguous
    logger.info("problem.domain path=%s code=%s status=%s", request.url.path, entry["code"], entry["status"])
    return problem_response(entry["status"], entry["title"], str(exc), entry["code"], **extra)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        body = {"status": status, **exc.detail}
        return JSONResponse(body, status_code=status, media_type=PROBLEM_MEDIA_TYPE, headers=exc.headers)
    return problem_response(
        status,
        "Error",
        str(exc.detail or ""),
        "HTTP_ERROR",
        headers=dict(exc.headers) if exc.headers else None,
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    return problem_response(
        422,
        "Invalid Request",
        "Request validation failed",
        "REQUEST_VALIDATION_FAILED",
        errors=[{k: v for k, v in err.items() if k in ("loc", "msg", "type")} for err in exc.errors()],
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return problem_response(500, "Internal Server Error", "Unexpected error", "INTERNAL_ERROR")


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "problem_response",
    "problem_etag_mismatch",
    "handle_order_sync_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
