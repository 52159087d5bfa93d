"""
User-facing notifications.

The engine never raises remote failures at its callers; it records them here
so a single notification surface can show them.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Literal

logger = logging.getLogger(__name__)

NotificationLevel = Literal["info", "error"]


@dataclass(frozen=True)
class Notification:
    """A transient message for the operator."""

    level: NotificationLevel
    message: str
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))


class NotificationCenter:
    """Bounded queue of recent notifications with an optional listener."""

    def __init__(
        self, *, listener: Callable[[Notification], None] | None = None, max_items: int = 50
    ):
        self.listener = listener
        self._items: deque[Notification] = deque(maxlen=max_items)

    def info(self, message: str) -> Notification:
        return self._push("info", message)

    def error(self, message: str) -> Notification:
        return self._push("error", message)

    def _push(self, level: NotificationLevel, message: str) -> Notification:
        notification = Notification(level=level, message=message)
        self._items.append(notification)
        if level == "error":
            logger.error(message)
        else:
            logger.info(message)
        if self.listener is not None:
            self.listener(notification)
        return notification

    @property
    def items(self) -> list[Notification]:
        return list(self._items)

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self._items if n.level == "error"]

    def drain(self) -> list[Notification]:
        """Return and forget every pending notification."""
        items = list(self._items)
        self._items.clear()
        return items

    def __len__(self) -> int:
        return len(self._items)
