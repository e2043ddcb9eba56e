"""Transient user notifications.

The engine and session report outcomes here instead of raising; a surface
(the terminal client, a test) registers a listener to display them.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from hmytodo.errors import HmyTodoError

logger = logging.getLogger(__name__)


class Level(StrEnum):
    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Notification:
    level: Level
    message: str
    retryable: bool = False

    @classmethod
    def from_error(cls, action: str, exc: HmyTodoError) -> Notification:
        message = f"Failed to {action}: {exc}"
        if exc.retryable:
            message += ". Please try again."
        return cls(Level.ERROR, message, retryable=exc.retryable)


NotificationListener = Callable[[Notification], None]


class Notifier:
    """Fan-out of notifications to registered listeners."""

    def __init__(self) -> None:
        self._listeners: list[NotificationListener] = []

    def subscribe(self, listener: NotificationListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def emit(self, notification: Notification) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("notification_listener_failed")

    def success(self, message: str) -> None:
        self.emit(Notification(Level.SUCCESS, message))

    def info(self, message: str) -> None:
        self.emit(Notification(Level.INFO, message))

    def warning(self, message: str) -> None:
        self.emit(Notification(Level.WARNING, message))

    def error(self, action: str, exc: HmyTodoError) -> None:
        self.emit(Notification.from_error(action, exc))
