"""Ordered item routes.

Hosts ordered lists (for example diet instructions) under
``/collections/{collection}``. Reads return the canonical order with an
ETag; reorders are server-authoritative: the move is reduced against the
stored order and committed as one atomic batch.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional, Set
import logging
import threading
import uuid

import anyio.to_thread
from fastapi import APIRouter, Header, Request
from fastapi.responses import JSONResponse, Response

from ordersync.http.problem import problem_etag_mismatch, problem_response
from ordersync.logic.committer import PersistenceCommitter
from ordersync.logic.document_store import DocumentStore
from ordersync.logic.errors import CommitInFlightError, PersistenceError
from ordersync.logic.etag import compare_etag, compute_collection_etag
from ordersync.logic.events import ITEM_CREATED, ITEM_DELETED, ORDER_COMMITTED, ORDER_ROLLED_BACK, publish
from ordersync.logic.order_model import next_order, ordered_ids, sort_items
from ordersync.logic.reducer import reduce_move
from ordersync.models.ordered_item import ItemCreate, ItemList, MoveIntent, OrderedItem

router = APIRouter(prefix="/collections")
logger = logging.getLogger(__name__)

# One reorder per collection may be committing at a time; others are rejected.
# Entries leave the set when their commit finishes.
_IN_FLIGHT: Set[str] = set()
_IN_FLIGHT_GUARD = threading.Lock()


@contextmanager
def _commit_slot(collection: str) -> Iterator[None]:
    with _IN_FLIGHT_GUARD:
        if collection in _IN_FLIGHT:
            raise CommitInFlightError(collection)
        _IN_FLIGHT.add(collection)
    try:
        yield
    finally:
        with _IN_FLIGHT_GUARD:
            _IN_FLIGHT.discard(collection)


def _store(request: Request) -> DocumentStore:
    return request.app.state.document_store


def _list_response(collection: str, items: list[OrderedItem], status_code: int = 200) -> JSONResponse:
    etag = compute_collection_etag(items)
    body = ItemList(collection=collection, items=items, etag=etag).model_dump(mode="json")
    return JSONResponse(body, status_code=status_code, headers={"ETag": etag})


@router.get("/{collection}/items", summary="List items in display order")
def list_items(collection: str, request: Request) -> JSONResponse:
    items = sort_items(_store(request).fetch_all(collection))
    return _list_response(collection, items)


@router.post("/{collection}/items", summary="Append an item to the end of the list")
def create_item(collection: str, payload: ItemCreate, request: Request) -> JSONResponse:
    store = _store(request)
    existing = store.fetch_all(collection)
    item_id = payload.id or str(uuid.uuid4())
    if item_id in ordered_ids(existing):
        return problem_response(409, "Conflict", f"item {item_id} already exists", "ORDER_ITEM_EXISTS")
    item = OrderedItem(
        id=item_id,
        order=next_order(existing),
        created_at=datetime.now(timezone.utc),
        payload=payload.payload,
    )
    store.insert(collection, item)
    publish(ITEM_CREATED, collection, item_id=item.id, order=item.order)
    resp = JSONResponse(item.model_dump(mode="json"), status_code=201)
    resp.headers["ETag"] = compute_collection_etag([*existing, item])
    return resp


@router.delete("/{collection}/items/{item_id}", summary="Delete an item; remaining orders keep their gaps")
def delete_item(collection: str, item_id: str, request: Request) -> Response:
    _store(request).delete(collection, item_id)
    publish(ITEM_DELETED, collection, item_id=item_id)
    return Response(status_code=204)


@router.post("/{collection}/reorder", summary="Move one item onto another item's position")
async def reorder_items(
    collection: str,
    move: MoveIntent,
    request: Request,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
) -> JSONResponse:
    store = _store(request)
    with _commit_slot(collection):
        items = sort_items(await anyio.to_thread.run_sync(store.fetch_all, collection))
        current = compute_collection_etag(items)
        if if_match is not None and not compare_etag(current, if_match):
            logger.info("reorder.precondition_failed collection=%s if_match=%s current=%s", collection, if_match, current)
            return problem_etag_mismatch(current)
        reduced = reduce_move(items, move)
        committer = PersistenceCommitter(store, write_scope=request.app.state.config.reorder.write_scope)
        try:
            await committer.commit(collection, items, reduced)
        except PersistenceError as exc:
            publish(ORDER_ROLLED_BACK, collection, source_id=move.source_id, target_id=move.target_id, ambiguous=exc.ambiguous)
            raise
        if move.source_id != move.target_id:
            publish(ORDER_COMMITTED, collection, source_id=move.source_id, target_id=move.target_id, ids=ordered_ids(reduced))
    return _list_response(collection, reduced)


__all__ = ["router", "list_items", "create_item", "delete_item", "reorder_items"]
