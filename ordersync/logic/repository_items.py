"""SQL-backed document store for ordered items.

Rows live in ``ordered_item`` keyed by ``(collection_path, item_id)``. Domain
payload fields are stored as a JSON text column. ``batch_write`` runs every
update inside one ``engine.begin()`` transaction; any failure rolls the whole
batch back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence
import json
import logging

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection, Engine

from ordersync.db.base import get_engine
from ordersync.logic.document_store import ChangeListener, ListenerRegistry, Unsubscribe, apply_fields
from ordersync.logic.errors import DocumentNotFoundError
from ordersync.models.ordered_item import ItemUpdate, OrderedItem

logger = logging.getLogger(__name__)


def _parse_created(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("ordered_item.created_at_unparseable value=%s", value)
        return None


def _format_created(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _row_to_item(row: Any) -> OrderedItem:
    raw_payload = row[3]
    try:
        payload = json.loads(raw_payload) if raw_payload else {}
    except (TypeError, json.JSONDecodeError):
        logger.warning("ordered_item.payload_unparseable item_id=%s", row[0])
        payload = {}
    return OrderedItem(
        id=str(row[0]),
        order=row[1],
        created_at=_parse_created(row[2]),
        payload=payload if isinstance(payload, dict) else {},
    )


def _select_collection(conn: Connection, collection_path: str) -> list[OrderedItem]:
    rows = conn.execute(
        sql_text("SELECT item_id, item_order, created_at, payload FROM ordered_item WHERE collection_path = :cp"),
        {"cp": collection_path},
    ).fetchall()
    return [_row_to_item(r) for r in rows]


class SqlDocumentStore:
    """Document store over the ``ordered_item`` table.

    Listener snapshots are read inside the writing transaction, never after
    it commits.
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine
        self._listeners = ListenerRegistry()

    @property
    def engine(self) -> Engine:
        return self._engine or get_engine()

    def fetch_all(self, collection_path: str) -> list[OrderedItem]:
        with self.engine.connect() as conn:
            return _select_collection(conn, collection_path)

    def batch_write(self, collection_path: str, updates: Sequence[ItemUpdate]) -> None:
        with self.engine.begin() as conn:
            for upd in updates:
                row = conn.execute(
                    sql_text(
                        "SELECT item_id, item_order, created_at, payload FROM ordered_item "
                        "WHERE collection_path = :cp AND item_id = :iid"
                    ),
                    {"cp": collection_path, "iid": upd.id},
                ).fetchone()
                if row is None:
                    # Raising inside begin() rolls back updates already issued
                    raise DocumentNotFoundError(collection_path, upd.id)
                merged = apply_fields(_row_to_item(row), upd.fields)
                conn.execute(
                    sql_text(
                        "UPDATE ordered_item SET item_order = :ord, created_at = :ca, payload = :pl "
                        "WHERE collection_path = :cp AND item_id = :iid"
                    ),
                    {
                        "ord": int(merged.order),
                        "ca": _format_created(merged.created_at),
                        "pl": json.dumps(merged.payload),
                        "cp": collection_path,
                        "iid": upd.id,
                    },
                )
            snapshot = _select_collection(conn, collection_path)
        logger.info("ordered_item.batch_write collection=%s updates=%s", collection_path, len(updates))
        self._listeners.notify(collection_path, snapshot)

    def subscribe(self, collection_path: str, on_change: ChangeListener) -> Unsubscribe:
        return self._listeners.add(collection_path, on_change)

    def insert(self, collection_path: str, item: OrderedItem) -> OrderedItem:
        with self.engine.begin() as conn:
            conn.execute(
                sql_text(
                    "INSERT INTO ordered_item (collection_path, item_id, item_order, created_at, payload) "
                    "VALUES (:cp, :iid, :ord, :ca, :pl)"
                ),
                {
                    "cp": collection_path,
                    "iid": item.id,
                    "ord": int(item.order),
                    "ca": _format_created(item.created_at),
                    "pl": json.dumps(item.payload),
                },
            )
            snapshot = _select_collection(conn, collection_path)
        logger.info("ordered_item.insert collection=%s item_id=%s order=%s", collection_path, item.id, item.order)
        self._listeners.notify(collection_path, snapshot)
        return item

    def delete(self, collection_path: str, item_id: str) -> None:
        with self.engine.begin() as conn:
            result = conn.execute(
                sql_text("DELETE FROM ordered_item WHERE collection_path = :cp AND item_id = :iid"),
                {"cp": collection_path, "iid": item_id},
            )
            if not result.rowcount:
                raise DocumentNotFoundError(collection_path, item_id)
            snapshot = _select_collection(conn, collection_path)
        logger.info("ordered_item.delete collection=%s item_id=%s", collection_path, item_id)
        self._listeners.notify(collection_path, snapshot)

    def reset(self) -> None:
        with self.engine.begin() as conn:
            conn.execute(sql_text("DELETE FROM ordered_item"))
        self._listeners.clear()


__all__ = ["SqlDocumentStore"]
