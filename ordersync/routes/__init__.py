"""APIRouter registration for the ordered collection sync service."""

from __future__ import annotations

from fastapi import APIRouter

from ordersync.routes.items import router as items_router
from ordersync.routes.visits import router as visits_router

api_router = APIRouter()
api_router.include_router(items_router, tags=["Items", "Reorder"])
api_router.include_router(visits_router, tags=["Visits"])

__all__ = ["api_router"]
