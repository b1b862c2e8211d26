"""Visit plan data access helpers.

A visit plan stores its ordered place ids as a JSON array in
``visit_plan.place_order``. Reorders rewrite that single column, so each
write is atomic without a multi-row batch. Read-modify-write helpers pass
the order they read as ``expected`` so concurrent edits are never lost.
"""

from __future__ import annotations

from typing import Optional
import json
import logging
import uuid

from sqlalchemy import text as sql_text

from ordersync.db.base import get_engine
from ordersync.logic.errors import ConcurrentModificationAmbiguity, DocumentNotFoundError
from ordersync.models.ordered_item import VisitPlan

logger = logging.getLogger(__name__)

VISITS_COLLECTION = "visit_plan"


def _decode_order(raw: Optional[str]) -> list[str]:
    try:
        data = json.loads(raw) if raw else []
    except (TypeError, json.JSONDecodeError):
        logger.warning("visit_plan.place_order_unparseable raw=%s", raw)
        return []
    return [str(x) for x in data] if isinstance(data, list) else []


def create_visit(visit_date: str) -> VisitPlan:
    visit = VisitPlan(visit_id=str(uuid.uuid4()), visit_date=visit_date, place_order=[])
    with get_engine().begin() as conn:
        conn.execute(
            sql_text(
                "INSERT INTO visit_plan (visit_id, visit_date, place_order) VALUES (:vid, :vd, :po)"
            ),
            {"vid": visit.visit_id, "vd": visit.visit_date, "po": "[]"},
        )
    logger.info("visit_plan.create visit_id=%s date=%s", visit.visit_id, visit_date)
    return visit


def get_visit(visit_id: str) -> Optional[VisitPlan]:
    with get_engine().connect() as conn:
        row = conn.execute(
            sql_text("SELECT visit_id, visit_date, place_order FROM visit_plan WHERE visit_id = :vid"),
            {"vid": visit_id},
        ).fetchone()
    if row is None:
        return None
    return VisitPlan(visit_id=str(row[0]), visit_date=str(row[1]), place_order=_decode_order(row[2]))


def save_place_order(visit_id: str, place_order: list[str], expected: Optional[list[str]] = None) -> VisitPlan:
    """Persist ``place_order`` for a visit and return the stored plan.

    With ``expected`` the update only applies while the stored order still
    equals it (compare-and-set). A plan changed in between raises
    ``ConcurrentModificationAmbiguity`` carrying the order now stored.
    """
    params = {"po": json.dumps(list(place_order)), "vid": visit_id}
    sql = "UPDATE visit_plan SET place_order = :po WHERE visit_id = :vid"
    if expected is not None:
        sql += " AND place_order = :expected"
        params["expected"] = json.dumps(list(expected))
    with get_engine().begin() as conn:
        updated = conn.execute(sql_text(sql), params).rowcount
    if not updated:
        current = get_visit(visit_id)
        if current is None:
            raise DocumentNotFoundError(VISITS_COLLECTION, visit_id)
        logger.warning("visit_plan.save_conflict visit_id=%s stored=%s", visit_id, current.place_order)
        raise ConcurrentModificationAmbiguity(f"{VISITS_COLLECTION}/{visit_id}", current.place_order)
    logger.info("visit_plan.save_order visit_id=%s order=%s", visit_id, place_order)
    stored = get_visit(visit_id)
    if stored is None:
        raise DocumentNotFoundError(VISITS_COLLECTION, visit_id)
    return stored


def add_place(visit_id: str, place_id: str) -> VisitPlan:
    """Append ``place_id`` to the plan; a place already planned keeps its slot."""
    visit = get_visit(visit_id)
    if visit is None:
        raise DocumentNotFoundError(VISITS_COLLECTION, visit_id)
    if place_id in visit.place_order:
        return visit
    return save_place_order(visit_id, [*visit.place_order, place_id], expected=visit.place_order)


def remove_place(visit_id: str, place_id: str) -> VisitPlan:
    visit = get_visit(visit_id)
    if visit is None:
        raise DocumentNotFoundError(VISITS_COLLECTION, visit_id)
    if place_id not in visit.place_order:
        raise DocumentNotFoundError(f"{VISITS_COLLECTION}/{visit_id}/places", place_id)
    return save_place_order(
        visit_id, [p for p in visit.place_order if p != place_id], expected=visit.place_order
    )


def reset_visits() -> None:
    with get_engine().begin() as conn:
        conn.execute(sql_text("DELETE FROM visit_plan"))


__all__ = [
    "VISITS_COLLECTION",
    "create_visit",
    "get_visit",
    "save_place_order",
    "add_place",
    "remove_place",
    "reset_visits",
]
