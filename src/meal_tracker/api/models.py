"""Request and response models for the HTTP API."""

from datetime import date
from uuid import UUID

from pydantic import BaseModel, Field

from meal_tracker.domain.processing import ProcessingState, display_text, is_processing
from meal_tracker.domain.stats import DailyTotals


class MealCreate(BaseModel):
    text: str = Field(min_length=1)


class MealUpdate(BaseModel):
    transcript: str = Field(min_length=1)


class MealAccepted(BaseModel):
    meal_id: UUID
    status: str


class TotalsView(BaseModel):
    """Daily totals with the derived remaining calories."""

    day: date
    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float
    goal_calories: float
    remaining_calories: float

    @classmethod
    def from_totals(cls, totals: DailyTotals) -> "TotalsView":
        return cls(
            day=totals.day,
            calories=totals.calories,
            protein_g=totals.protein_g,
            carbs_g=totals.carbs_g,
            fat_g=totals.fat_g,
            goal_calories=totals.goal_calories,
            remaining_calories=totals.remaining_calories,
        )


class RecordingView(BaseModel):
    """Snapshot of the live recording interaction."""

    state: str
    text: str
    is_processing: bool
    level: float
    meal_id: UUID | None = None

    @classmethod
    def from_state(
        cls, state: ProcessingState, level: float, meal_id: UUID | None
    ) -> "RecordingView":
        return cls(
            state=state.name,
            text=display_text(state),
            is_processing=is_processing(state),
            level=level,
            meal_id=meal_id,
        )
