"""Notification sink that writes to the application log."""

import logging
from dataclasses import dataclass, field

from meal_tracker.services.notifications import NotificationSink


@dataclass
class LoggingNotificationSink(NotificationSink):
    """Delivers notifications as log records."""

    logger: logging.Logger = field(
        default_factory=lambda: logging.getLogger("meal_tracker.notifications")
    )

    def send(self, title: str, body: str) -> None:
        self.logger.info("%s %s", title, body)
