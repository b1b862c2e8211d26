"""Pure reordering helpers.

Provides array-move semantics for ordered items and for plain id lists.
Every successful item move renumbers the whole list to contiguous zero-based
``order`` values, so collisions and gaps left by earlier writes disappear.
"""

from __future__ import annotations

from typing import Sequence, TypeVar
import logging

from ordersync.logic.errors import InvalidMoveError
from ordersync.models.ordered_item import MoveIntent, OrderedItem

logger = logging.getLogger(__name__)

T = TypeVar("T")


def array_move(seq: Sequence[T], old_index: int, new_index: int) -> list[T]:
    """Return a copy of ``seq`` with the element at ``old_index`` moved to ``new_index``.

    Elements between the two positions shift by one towards the vacated slot.
    """
    working = list(seq)
    if not working:
        return working
    element = working.pop(old_index)
    working.insert(new_index, element)
    return working


def _locate(ids: Sequence[str], move: MoveIntent) -> tuple[int, int]:
    missing = [i for i in (move.source_id, move.target_id) if i not in ids]
    if missing:
        raise InvalidMoveError(move.source_id, move.target_id, list(dict.fromkeys(missing)))
    return ids.index(move.source_id), ids.index(move.target_id)


def reduce_move(items: Sequence[OrderedItem], move: MoveIntent) -> list[OrderedItem]:
    """Apply ``move`` to ``items`` (already in display order).

    - ``source_id == target_id`` present in the list: returns the items unchanged.
    - Either id absent: raises ``InvalidMoveError``; nothing should be persisted.
    - Otherwise: array-move the source onto the target's index and assign each
      item ``order = index``.
    """
    ids = [i.id for i in items]
    old_index, new_index = _locate(ids, move)
    if move.source_id == move.target_id:
        return list(items)
    moved = array_move(items, old_index, new_index)
    reduced = [item.model_copy(update={"order": idx}) for idx, item in enumerate(moved)]
    logger.debug(
        "reduce_move source=%s target=%s old_index=%s new_index=%s after=%s",
        move.source_id,
        move.target_id,
        old_index,
        new_index,
        [i.id for i in reduced],
    )
    return reduced


def reduce_id_order(ids: Sequence[str], move: MoveIntent) -> list[str]:
    """Array-move variant for orders stored as an id list (visit plans)."""
    old_index, new_index = _locate(list(ids), move)
    if old_index == new_index:
        return list(ids)
    return array_move(ids, old_index, new_index)


__all__ = ["array_move", "reduce_move", "reduce_id_order"]
