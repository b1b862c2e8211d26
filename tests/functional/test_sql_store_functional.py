"""SQL-backed document store against the migrated SQLite database."""

from __future__ import annotations

import anyio
import pytest
from sqlalchemy import text as sql_text
from sqlalchemy.exc import OperationalError

from fakes import make_items
from ordersync.db.base import get_engine
from ordersync.logic.errors import DocumentNotFoundError
from ordersync.logic.order_model import order_map, ordered_ids, sort_items
from ordersync.logic.reorder_session import OrderedCollectionSync
from ordersync.logic.repository_items import SqlDocumentStore
from ordersync.models.ordered_item import ItemUpdate, OrderedItem
from ordersync.models.reorder_state import Committed


@pytest.fixture
def sql_store() -> SqlDocumentStore:
    store = SqlDocumentStore(get_engine())
    for item in make_items("A", "B", "C"):
        store.insert("instructions", item)
    return store


def test_fetch_all_round_trips_fields(sql_store):
    items = sort_items(sql_store.fetch_all("instructions"))
    assert items == make_items("A", "B", "C")
    assert items[0].payload == {"title": "A"}


def test_collections_are_isolated(sql_store):
    sql_store.insert("other", OrderedItem(id="A", order=9))
    assert order_map(sql_store.fetch_all("other")) == {"A": 9}
    assert order_map(sql_store.fetch_all("instructions")) == {"A": 0, "B": 1, "C": 2}


def test_batch_write_applies_all_updates(sql_store):
    sql_store.batch_write(
        "instructions",
        [ItemUpdate(id="C", fields={"order": 0}), ItemUpdate(id="A", fields={"order": 1}), ItemUpdate(id="B", fields={"order": 2})],
    )
    assert ordered_ids(sort_items(sql_store.fetch_all("instructions"))) == ["C", "A", "B"]


def test_batch_write_is_all_or_nothing(sql_store):
    with pytest.raises(DocumentNotFoundError):
        sql_store.batch_write(
            "instructions",
            [ItemUpdate(id="A", fields={"order": 5}), ItemUpdate(id="missing", fields={"order": 0})],
        )
    assert order_map(sql_store.fetch_all("instructions")) == {"A": 0, "B": 1, "C": 2}


def test_non_order_fields_merge_into_payload(sql_store):
    sql_store.batch_write("instructions", [ItemUpdate(id="B", fields={"note": "with food"})])
    item = {i.id: i for i in sql_store.fetch_all("instructions")}["B"]
    assert item.payload == {"title": "B", "note": "with food"}
    assert item.order == 1


def test_subscribers_receive_snapshot_after_each_write(sql_store):
    seen: list[list[str]] = []
    unsubscribe = sql_store.subscribe("instructions", lambda items: seen.append(ordered_ids(sort_items(items))))
    sql_store.batch_write("instructions", [ItemUpdate(id="A", fields={"order": 3})])
    sql_store.delete("instructions", "B")
    unsubscribe()
    sql_store.insert("instructions", OrderedItem(id="D", order=7))
    assert seen == [["B", "C", "A"], ["C", "A"]]


def test_delete_missing_item_raises(sql_store):
    with pytest.raises(DocumentNotFoundError):
        sql_store.delete("instructions", "nope")


def test_legacy_row_without_timestamp_or_payload(sql_store):
    with get_engine().begin() as conn:
        conn.execute(
            sql_text(
                "INSERT INTO ordered_item (collection_path, item_id, item_order, created_at, payload) "
                "VALUES ('instructions', 'legacy', 0, NULL, '')"
            )
        )
    items = sort_items(sql_store.fetch_all("instructions"))
    legacy = {i.id: i for i in items}["legacy"]
    assert legacy.created_at is None
    assert legacy.payload == {}
    # Same order as A; the item without a timestamp sorts after the dated one
    assert ordered_ids(items)[:2] == ["A", "legacy"]


class _UnreadableAfterLoadStore(SqlDocumentStore):
    """Public reads fail once ``fail_reads`` is set; writes still work."""

    fail_reads = False

    def fetch_all(self, collection_path):
        if self.fail_reads:
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return super().fetch_all(collection_path)


def test_committed_write_is_not_reported_as_failed_when_reads_fail():
    store = _UnreadableAfterLoadStore(get_engine())
    for item in make_items("A", "B", "C"):
        store.insert("instructions", item)
    seen: list[list[str]] = []
    store.subscribe("instructions", lambda items: seen.append(ordered_ids(sort_items(items))))
    store.fail_reads = True

    store.batch_write("instructions", [ItemUpdate(id="C", fields={"order": -1})])

    assert seen == [["C", "A", "B"]]
    assert order_map(SqlDocumentStore(get_engine()).fetch_all("instructions")) == {"A": 0, "B": 1, "C": -1}


def test_session_over_sql_store_keeps_committed_order_when_reads_fail():
    store = _UnreadableAfterLoadStore(get_engine())
    for item in make_items("A", "B", "C"):
        store.insert("instructions", item)
    session = OrderedCollectionSync(store, "instructions")
    session.load()
    session.attach()
    store.fail_reads = True

    outcome = anyio.run(session.reorder, "C", "A")

    assert isinstance(outcome, Committed)
    stored = order_map(SqlDocumentStore(get_engine()).fetch_all("instructions"))
    assert stored == {"C": 0, "A": 1, "B": 2}
    assert order_map(session.items) == stored
    assert session.notifier.history == []
