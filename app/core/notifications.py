"""Publish/subscribe notifications for user-facing payment events.

One bus is created per application and handed to the services that need it,
so services can be exercised in isolation with their own bus.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    title: str
    description: str = ""
    variant: str = "default"  # default | destructive
    user_id: Optional[str] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


Listener = Callable[[Notification], None]


class NotificationBus:
    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that unsubscribes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def publish(self, notification: Notification) -> None:
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed for %r", notification.title)

    def success(self, title: str, description: str = "", user_id: Optional[str] = None) -> None:
        self.publish(Notification(title=title, description=description, user_id=user_id))

    def error(self, title: str, description: str = "", user_id: Optional[str] = None) -> None:
        self.publish(Notification(title=title, description=description, variant="destructive", user_id=user_id))


def log_listener(notification: Notification) -> None:
    level = logging.WARNING if notification.variant == "destructive" else logging.INFO
    logger.log(level, "[notify user=%s] %s: %s", notification.user_id, notification.title, notification.description)
