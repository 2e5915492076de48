"""Notification sinks."""
import logging
from typing import List

from ..models import Notification, NotificationLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.ERROR,
}


class LoggingNotificationSink:
    """Forwards notifications to a logger."""

    def __init__(self, log: logging.Logger = logger):
        self._log = log

    def notify(self, notification: Notification) -> None:
        self._log.log(_LOG_LEVELS[notification.level], "%s", notification.message)


class CollectingNotificationSink:
    """Keeps notifications in memory, e.g. for a UI to drain after each call."""

    def __init__(self):
        self.notifications: List[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)

    def drain(self) -> List[Notification]:
        drained, self.notifications = self.notifications, []
        return drained
