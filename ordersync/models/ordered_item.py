"""Pydantic models for ordered items, move intents and HTTP payloads."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class OrderedItem(BaseModel):
    id: str
    order: int = 0
    created_at: datetime | None = None
    # Domain fields (title, instruction, ...) carried through untouched
    payload: dict[str, Any] = Field(default_factory=dict)

    @field_validator("order", mode="before")
    @classmethod
    def missing_order_is_zero(cls, v: Any) -> Any:
        return 0 if v is None else v


class MoveIntent(BaseModel):
    """Resolved outcome of a drag gesture: move ``source_id`` onto ``target_id``."""

    source_id: str
    target_id: str


class ItemUpdate(BaseModel):
    id: str
    fields: dict[str, Any]


class ItemCreate(BaseModel):
    id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class ItemList(BaseModel):
    collection: str
    items: list[OrderedItem]
    etag: str


class VisitPlan(BaseModel):
    visit_id: str
    visit_date: str
    place_order: list[str] = Field(default_factory=list)


class VisitCreate(BaseModel):
    visit_date: str

    @field_validator("visit_date")
    @classmethod
    def visit_date_non_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("visit_date must be a non-empty string")
        return v.strip()


class PlaceAdd(BaseModel):
    place_id: str


__all__ = [
    "OrderedItem",
    "MoveIntent",
    "ItemUpdate",
    "ItemCreate",
    "ItemList",
    "VisitPlan",
    "VisitCreate",
    "PlaceAdd",
]
