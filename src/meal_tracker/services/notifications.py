"""Meal notification formatting."""

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)

SUCCESS_TITLE = "Meal Logged!"
FAILURE_TITLE = "Meal Analysis Failed"
FAILURE_BODY = "We couldn't analyze your meal. Please try again."


class NotificationSink(Protocol):
    """Delivers user-facing notifications."""

    def send(self, title: str, body: str) -> None:
        """Show a notification to the user."""


@dataclass
class MealNotifier:
    """Fire-and-forget notifications for analysis outcomes."""

    sink: NotificationSink

    def meal_completed(self, description: str, calories: float) -> None:
        """Announce a successfully analysed meal."""
        self._send(SUCCESS_TITLE, f"{description} • {round(calories)} cal")

    def meal_failed(self) -> None:
        """Announce that a meal could not be analysed."""
        self._send(FAILURE_TITLE, FAILURE_BODY)

    def _send(self, title: str, body: str) -> None:
        try:
            self.sink.send(title, body)
        except Exception:
            logger.exception("Failed to send notification %r", title)
