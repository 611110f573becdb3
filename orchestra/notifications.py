from __future__ import annotations

from collections import deque
import logging

from orchestra.events import InMemoryEventBus
from orchestra.models import Notification, NotificationLevel

logger = logging.getLogger(__name__)


class Notifier:
    """Transient user-facing messages, published on the event bus."""

    def __init__(self, bus: InMemoryEventBus, history: int = 20) -> None:
        self._bus = bus
        self._recent: deque[Notification] = deque(maxlen=history)

    def notify(
        self,
        title: str,
        description: str,
        level: NotificationLevel = NotificationLevel.INFO,
    ) -> Notification:
        notification = Notification(title=title, description=description, level=level)
        self._recent.appendleft(notification)
        if level == NotificationLevel.ERROR:
            logger.warning("%s: %s", title, description)
        else:
            logger.info("%s: %s", title, description)
        self._bus.publish("notification", notification.to_dict())
        return notification

    def info(self, title: str, description: str) -> Notification:
        return self.notify(title, description, NotificationLevel.INFO)

    def success(self, title: str, description: str) -> Notification:
        return self.notify(title, description, NotificationLevel.SUCCESS)

    def error(self, title: str, description: str) -> Notification:
        return self.notify(title, description, NotificationLevel.ERROR)

    def recent(self) -> tuple[Notification, ...]:
        return tuple(self._recent)
