"""Transient, dismissible user notifications (toasts)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from collections import deque
from typing import Deque, List, Optional
import logging
import uuid

logger = logging.getLogger(__name__)

DEFAULT_REORDER_ERROR = "Error updating order, please try again"


@dataclass
class Notification:
    message: str
    level: str = "error"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    dismissed: bool = False


class Notifier:
    """Holds visible notifications; the oldest drop off past ``max_visible``.

    ``history`` keeps the most recent ``history_limit`` notifications shown, never
    fewer than ``max_visible``.
    """

    def __init__(self, max_visible: int = 3, history_limit: int = 50) -> None:
        if max_visible <= 0:
            raise ValueError("max_visible must be positive")
        self.max_visible = max_visible
        self._items: List[Notification] = []
        self._history: Deque[Notification] = deque(maxlen=max(history_limit, max_visible))

    def notify(self, message: str, level: str = "error") -> Notification:
        note = Notification(message=message, level=level)
        self._items.append(note)
        self._history.append(note)
        while len(self._items) > self.max_visible:
            self._items.pop(0)
        logger.info("notification.shown level=%s message=%s", level, message)
        return note

    def dismiss(self, notification_id: str) -> bool:
        for note in self._items:
            if note.id == notification_id:
                note.dismissed = True
                self._items.remove(note)
                return True
        return False

    @property
    def visible(self) -> List[Notification]:
        return list(self._items)

    @property
    def history(self) -> List[Notification]:
        return list(self._history)

    def latest(self) -> Optional[Notification]:
        return self._items[-1] if self._items else None


__all__ = ["DEFAULT_REORDER_ERROR", "Notification", "Notifier"]
