"""In-process event channel for meal store changes."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from meal_tracker.domain.meals import MealEvent

logger = logging.getLogger(__name__)

MealEventHandler = Callable[[MealEvent], None]


@dataclass
class EventChannel:
    """Synchronous publish/subscribe channel.

    Handlers run in subscription order. A failing handler is logged and does
    not prevent the remaining handlers from running.
    """

    _handlers: list[MealEventHandler] = field(default_factory=list)

    def subscribe(self, handler: MealEventHandler) -> Callable[[], None]:
        """Register a handler and return a callable that removes it."""
        self._handlers.append(handler)

        def unsubscribe() -> None:
            if handler in self._handlers:
                self._handlers.remove(handler)

        return unsubscribe

    def publish(self, event: MealEvent) -> None:
        """Deliver an event to every subscribed handler."""
        for handler in list(self._handlers):
            try:
                handler(event)
            except Exception:
                logger.exception("Meal event handler failed for %s", event.kind)
