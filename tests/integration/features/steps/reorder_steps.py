"""Step definitions for the reorder feature."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import anyio
from behave import given, then, when

from ordersync.logic.document_store import InMemoryDocumentStore
from ordersync.logic.errors import PersistenceError
from ordersync.logic.reorder_session import OrderedCollectionSync
from ordersync.models.ordered_item import OrderedItem

COLLECTION = "instructions"


def _split(csv: str) -> list[str]:
    return [part.strip() for part in csv.split(",") if part.strip()]


def _pairs(csv: str) -> list[tuple[str, int]]:
    pairs = []
    for part in _split(csv):
        item_id, order = part.split(":")
        pairs.append((item_id.strip(), int(order)))
    return pairs


def _seeded(ids: list[str], store: InMemoryDocumentStore) -> InMemoryDocumentStore:
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for n, item_id in enumerate(ids):
        store.insert(COLLECTION, OrderedItem(id=item_id, order=n, created_at=start + timedelta(minutes=n)))
    return store


class _NetworkFailureStore(InMemoryDocumentStore):
    def batch_write(self, collection_path, updates):  # type: ignore[no-untyped-def]
        raise ConnectionError("network unreachable")


# HTTP steps

@given('the collection "{collection}" holds items "{ids}" in that order')
def step_seed_collection(context: Any, collection: str, ids: str) -> None:
    for item_id in _split(ids):
        resp = context.client.post(f"/api/v1/collections/{collection}/items", json={"id": item_id})
        assert resp.status_code == 201, resp.text


@given("I remember the collection ETag")
def step_remember_etag(context: Any) -> None:
    context.etag = context.client.get(f"/api/v1/collections/{COLLECTION}/items").headers["ETag"]


@given('the item "{source}" is moved onto "{target}" over HTTP')
@when('the item "{source}" is moved onto "{target}" over HTTP')
def step_http_move(context: Any, source: str, target: str) -> None:
    context.response = context.client.post(
        f"/api/v1/collections/{COLLECTION}/reorder",
        json={"source_id": source, "target_id": target},
    )


@when('the item "{source}" is moved onto "{target}" over HTTP using the remembered ETag')
def step_http_move_if_match(context: Any, source: str, target: str) -> None:
    context.response = context.client.post(
        f"/api/v1/collections/{COLLECTION}/reorder",
        json={"source_id": source, "target_id": target},
        headers={"If-Match": context.etag},
    )


@then("the response status is {status:d}")
def step_status(context: Any, status: int) -> None:
    assert context.response.status_code == status, context.response.text


@then('the problem code is "{code}"')
def step_problem_code(context: Any, code: str) -> None:
    assert context.response.headers["content-type"].startswith("application/problem+json")
    assert context.response.json()["code"] == code


@then('the collection "{collection}" reads "{expected}"')
def step_collection_reads(context: Any, collection: str, expected: str) -> None:
    body = context.client.get(f"/api/v1/collections/{collection}/items").json()
    assert [(i["id"], i["order"]) for i in body["items"]] == _pairs(expected), body


# Client session steps

@given('a client session over "{ids}" whose store rejects writes with a network error')
def step_session_failing(context: Any, ids: str) -> None:
    context.store = _seeded(_split(ids), _NetworkFailureStore())
    context.session = OrderedCollectionSync(context.store, COLLECTION)
    context.session.load()
    context.session.attach()


@given('a client session over "{ids}" on a live store')
def step_session_live(context: Any, ids: str) -> None:
    context.store = _seeded(_split(ids), InMemoryDocumentStore())
    context.session = OrderedCollectionSync(context.store, COLLECTION)
    context.session.load()
    context.session.attach()


@when('the session moves "{source}" onto "{target}"')
def step_session_move(context: Any, source: str, target: str) -> None:
    anyio.run(context.session.reorder, source, target)


@then('the session shows "{expected}"')
def step_session_shows(context: Any, expected: str) -> None:
    assert [(i.id, i.order) for i in context.session.items] == _pairs(expected)


@then('exactly {count:d} notification reads "{message}"')
def step_notifications(context: Any, count: int, message: str) -> None:
    history = context.session.notifier.history
    assert [n.message for n in history] == [message] * count


@then("no notification is shown")
def step_no_notification(context: Any) -> None:
    assert context.session.notifier.visible == []
    assert context.session.notifier.history == []


@then('the session outcome is "{name}"')
def step_outcome(context: Any, name: str) -> None:
    outcome = context.session.last_outcome
    assert outcome is not None and outcome.name == name
    if name == "RolledBack":
        assert isinstance(outcome.error, PersistenceError)
