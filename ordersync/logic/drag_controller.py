"""Gesture-to-move translation for a rendered ordered list.

The controller is fed a pointer or keyboard gesture stream and emits at most
one ``MoveIntent`` per gesture to the injected ``on_move`` callback. Intents
carry item ids, never indices, so a list mutated mid-gesture cannot redirect
the move onto the wrong item.
"""

from __future__ import annotations

from typing import Callable, Optional, Sequence
import logging

from ordersync.models.ordered_item import MoveIntent

logger = logging.getLogger(__name__)

_UNSET = object()


class DragController:
    def __init__(
        self,
        on_move: Callable[[MoveIntent], object],
        ids: Callable[[], Sequence[str]] | None = None,
        on_gesture_start: Callable[[str], object] | None = None,
        on_gesture_cancel: Callable[[], object] | None = None,
    ) -> None:
        self._on_move = on_move
        # Provider of the currently displayed id sequence (keyboard stepping)
        self._ids = ids or (lambda: [])
        self._on_gesture_start = on_gesture_start
        self._on_gesture_cancel = on_gesture_cancel
        self._active: Optional[str] = None
        self._over: Optional[str] = None
        self.enabled = True

    @property
    def dragging_id(self) -> Optional[str]:
        """Id rendered in the "being dragged" visual state, if any."""
        return self._active

    @property
    def over_id(self) -> Optional[str]:
        return self._over

    # Pointer gestures

    def press(self, item_id: str) -> bool:
        if not self.enabled:
            logger.info("drag.press_refused item_id=%s reason=disabled", item_id)
            return False
        if self._active is not None:
            return False
        self._active = item_id
        self._over = item_id
        if self._on_gesture_start is not None:
            self._on_gesture_start(item_id)
        return True

    def move(self, over_id: Optional[str]) -> None:
        if self._active is None:
            return
        self._over = over_id

    def release(self, over_id: object = _UNSET) -> Optional[MoveIntent]:
        """End the gesture, emitting a move when it landed on another item.

        ``over_id=None`` means released outside the list. When omitted, the
        last item hovered via ``move``/``key_step`` is the target.
        """
        if self._active is None:
            return None
        target = self._over if over_id is _UNSET else over_id
        source = self._active
        self._active = None
        self._over = None
        if target is None or target == source:
            logger.debug("drag.release_no_move source=%s target=%s", source, target)
            self._cancelled()
            return None
        intent = MoveIntent(source_id=source, target_id=str(target))
        self._on_move(intent)
        return intent

    def cancel(self) -> None:
        if self._active is None:
            return
        logger.debug("drag.cancel source=%s", self._active)
        self._active = None
        self._over = None
        self._cancelled()

    # Keyboard equivalents: pick up, step up/down, drop

    def key_pick(self, item_id: str) -> bool:
        return self.press(item_id)

    def key_step(self, delta: int) -> None:
        if self._active is None:
            return
        ids = list(self._ids())
        current = self._over if self._over in ids else self._active
        if current not in ids:
            return
        idx = max(0, min(len(ids) - 1, ids.index(current) + int(delta)))
        self._over = ids[idx]

    def key_drop(self) -> Optional[MoveIntent]:
        return self.release()

    def _cancelled(self) -> None:
        if self._on_gesture_cancel is not None:
            self._on_gesture_cancel()


__all__ = ["DragController"]
