"""Visit plan routes.

A visit plan is an ordered board of place ids for one day. Places are
appended as they are planned and reordered by drag moves expressed as
``{source_id, target_id}``.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar
import logging

from fastapi import APIRouter, Header
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from ordersync.http.problem import problem_etag_mismatch
from ordersync.logic import repository_visits as visits
from ordersync.logic.errors import DocumentNotFoundError, PersistenceError
from ordersync.logic.etag import compare_etag, compute_id_order_etag
from ordersync.logic.events import VISIT_ORDER_CHANGED, publish
from ordersync.logic.reducer import reduce_id_order
from ordersync.models.ordered_item import MoveIntent, PlaceAdd, VisitCreate, VisitPlan

router = APIRouter(prefix="/visits")
logger = logging.getLogger(__name__)

T = TypeVar("T")


def _persist(op: Callable[[], T], visit_id: str) -> T:
    try:
        return op()
    except SQLAlchemyError as exc:
        logger.error("visit_plan.persist_failed visit_id=%s", visit_id, exc_info=True)
        raise PersistenceError(f"visit {visit_id} could not be saved", cause=exc) from exc


def _visit_response(visit: VisitPlan, status_code: int = 200) -> JSONResponse:
    etag = compute_id_order_etag(visit.visit_id, visit.place_order)
    return JSONResponse(visit.model_dump(mode="json"), status_code=status_code, headers={"ETag": etag})


def _require_visit(visit_id: str) -> VisitPlan:
    visit = visits.get_visit(visit_id)
    if visit is None:
        raise DocumentNotFoundError(visits.VISITS_COLLECTION, visit_id)
    return visit


@router.post("", summary="Create an empty visit plan for a date")
def create_visit(payload: VisitCreate) -> JSONResponse:
    visit = _persist(lambda: visits.create_visit(payload.visit_date), "new")
    return _visit_response(visit, status_code=201)


@router.get("/{visit_id}", summary="Get a visit plan")
def get_visit(visit_id: str) -> JSONResponse:
    return _visit_response(_require_visit(visit_id))


@router.post("/{visit_id}/places", summary="Append a place to the plan")
def add_place(visit_id: str, payload: PlaceAdd) -> JSONResponse:
    visit = _persist(lambda: visits.add_place(visit_id, payload.place_id), visit_id)
    publish(VISIT_ORDER_CHANGED, visits.VISITS_COLLECTION, visit_id=visit_id, place_order=visit.place_order)
    return _visit_response(visit)


@router.delete("/{visit_id}/places/{place_id}", summary="Remove a place from the plan")
def remove_place(visit_id: str, place_id: str) -> JSONResponse:
    visit = _persist(lambda: visits.remove_place(visit_id, place_id), visit_id)
    publish(VISIT_ORDER_CHANGED, visits.VISITS_COLLECTION, visit_id=visit_id, place_order=visit.place_order)
    return _visit_response(visit)


@router.post("/{visit_id}/reorder", summary="Move one planned place onto another's position")
def reorder_places(
    visit_id: str,
    move: MoveIntent,
    if_match: Optional[str] = Header(default=None, alias="If-Match"),
) -> JSONResponse:
    visit = _require_visit(visit_id)
    current = compute_id_order_etag(visit.visit_id, visit.place_order)
    if if_match is not None and not compare_etag(current, if_match):
        return problem_etag_mismatch(current)
    new_order = reduce_id_order(visit.place_order, move)
    if new_order == visit.place_order:
        return _visit_response(visit)
    saved = _persist(lambda: visits.save_place_order(visit_id, new_order, expected=visit.place_order), visit_id)
    publish(VISIT_ORDER_CHANGED, visits.VISITS_COLLECTION, visit_id=visit_id, place_order=saved.place_order)
    return _visit_response(saved)


__all__ = ["router", "create_visit", "get_visit", "add_place", "remove_place", "reorder_places"]
