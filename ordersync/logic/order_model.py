"""Canonical ordering of items fetched from the backing store.

Display order is ``order`` ascending, then ``created_at`` descending. Shared
``order`` values are tolerated, not prevented; the secondary key keeps the
sequence deterministic when they occur.
"""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from ordersync.models.ordered_item import OrderedItem


def _created_ts(value: datetime | None) -> float:
    if value is None:
        return 0.0
    return value.timestamp()


def sort_key(item: OrderedItem) -> tuple[int, float, str]:
    # id as final key so equal (order, created_at) pairs still sort stably
    return (int(item.order or 0), -_created_ts(item.created_at), item.id)


def sort_items(items: Iterable[OrderedItem]) -> list[OrderedItem]:
    """Return ``items`` in canonical display order."""
    return sorted(items, key=sort_key)


def next_order(items: Iterable[OrderedItem]) -> int:
    """Order value for a newly appended item: one greater than the current max."""
    orders = [int(i.order or 0) for i in items]
    return (max(orders) if orders else 0) + 1


def ordered_ids(items: Iterable[OrderedItem]) -> list[str]:
    return [i.id for i in items]


def order_map(items: Iterable[OrderedItem]) -> dict[str, int]:
    return {i.id: int(i.order or 0) for i in items}


def same_ordering(left: Iterable[OrderedItem], right: Iterable[OrderedItem]) -> bool:
    """True when both lists hold the same ids with the same ``order`` values."""
    return order_map(left) == order_map(right)


__all__ = [
    "sort_key",
    "sort_items",
    "next_order",
    "ordered_ids",
    "order_map",
    "same_ordering",
]
