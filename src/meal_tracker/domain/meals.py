"""Domain models for logged meals."""

from dataclasses import dataclass
from datetime import date, datetime, tzinfo
from typing import Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

from meal_tracker.domain.nutrition import (
    FailureResult,
    NutritionAnalysis,
    NutritionResult,
    PendingResult,
    SuccessResult,
)

TITLE_MAX_LENGTH = 40


class Meal(BaseModel):
    """A single logged eating event."""

    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    created_at: datetime
    transcript: str | None = None
    title: str | None = None
    result: NutritionResult = Field(default_factory=PendingResult)
    is_loading: bool = True

    @property
    def analysis(self) -> NutritionAnalysis | None:
        """Return the analysis when the meal resolved successfully."""
        if isinstance(self.result, SuccessResult):
            return self.result.analysis
        return None

    @property
    def error_message(self) -> str | None:
        if isinstance(self.result, FailureResult):
            return self.result.message
        return None

    @property
    def is_resolved(self) -> bool:
        return not isinstance(self.result, PendingResult)

    def local_day(self, tz: tzinfo) -> date:
        """Return the calendar day of the meal in the given timezone."""
        return self.created_at.astimezone(tz).date()


def title_from_description(description: str) -> str:
    """Build a short display title from an analysis description."""
    cleaned = " ".join(description.split())
    if len(cleaned) <= TITLE_MAX_LENGTH:
        return cleaned
    return cleaned[: TITLE_MAX_LENGTH - 1].rstrip() + "…"


@dataclass(frozen=True)
class MealEvent:
    """Change notification emitted by the meal store."""

    kind: Literal["created", "updated", "deleted", "reset"]
    meal_id: UUID | None
    day: date | None
