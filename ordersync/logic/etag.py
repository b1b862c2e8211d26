"""ETag computation helpers for ordered collections.

A collection's ETag fingerprints its canonical order: the sorted sequence of
``id:order`` pairs hashed with SHA1 and emitted as a weak validator. Any
reorder, insert or delete therefore changes the tag, which lets HTTP clients
detect that their displayed order is stale.
"""

from __future__ import annotations

from typing import Iterable
import hashlib
import logging

from ordersync.logic.order_model import sort_items
from ordersync.models.ordered_item import OrderedItem

logger = logging.getLogger(__name__)


def compute_collection_etag(items: Iterable[OrderedItem]) -> str:
    token = "|".join(f"{i.id}:{int(i.order)}" for i in sort_items(items)).encode("utf-8")
    return f'W/"{hashlib.sha1(token).hexdigest()}"'


def compute_id_order_etag(owner_id: str, ids: Iterable[str]) -> str:
    token = f"{owner_id}|" + ",".join(ids)
    return f'W/"{hashlib.sha1(token.encode("utf-8")).hexdigest()}"'


def _split_if_match(value: str) -> list[str]:
    """Quote-aware comma split; raises ValueError on unbalanced quotes."""
    in_quote = False
    buf: list[str] = []
    parts: list[str] = []
    for ch in value:
        if ch == '"':
            in_quote = not in_quote
            buf.append(ch)
        elif ch == "," and not in_quote:
            parts.append("".join(buf).strip())
            buf.clear()
        else:
            buf.append(ch)
    if in_quote:
        raise ValueError("unterminated quoted string in If-Match header")
    parts.append("".join(buf).strip())
    return [p for p in parts if p]


def normalize_etag_token(value: str | None) -> str:
    """Return the opaque tag inside ``W/"..."`` or ``"..."``; empty when malformed."""
    if value is None:
        return ""
    t = value.strip()
    if len(t) >= 2 and t[:2].upper() == "W/":
        t = t[2:].lstrip()
    if not (len(t) >= 2 and t.startswith('"') and t.endswith('"')):
        return ""
    inner = t[1:-1].strip()
    if not inner or '"' in inner:
        return ""
    return inner


def compare_etag(current: str | None, if_match: str | None) -> bool:
    """Return True when ``if_match`` matches ``current``.

    Supports ``*`` and comma-separated lists (any-match) using weak
    comparison. Missing, empty or malformed headers never match.
    """
    if if_match is None or not if_match.strip():
        return False
    s = if_match.strip()
    if s == "*":
        return True
    current_norm = normalize_etag_token(current)
    try:
        parts = _split_if_match(s)
    except ValueError:
        logger.info("etag.compare malformed if_match=%s", if_match)
        return False
    matched = any(normalize_etag_token(p) == current_norm for p in parts if normalize_etag_token(p))
    logger.info("etag.compare current=%s tokens=%s matched=%s", current_norm, len(parts), matched)
    return matched


__all__ = [
    "compute_collection_etag",
    "compute_id_order_etag",
    "normalize_etag_token",
    "compare_etag",
]
