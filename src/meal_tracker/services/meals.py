"""Meal store: the single owner of meal and daily totals mutation."""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Protocol
from uuid import UUID

from meal_tracker.domain.meals import Meal, MealEvent, title_from_description
from meal_tracker.domain.nutrition import FailureResult, SuccessResult
from meal_tracker.domain.stats import DailyTotals
from meal_tracker.services.aggregates import AggregateEngine, sum_analyses
from meal_tracker.services.clock import Clock
from meal_tracker.services.events import EventChannel

logger = logging.getLogger(__name__)


class MealRepository(Protocol):
    """Persistence interface for the meal list."""

    def load_meals(self) -> list[Meal]:
        """Return all persisted meals."""

    def save_meals(self, meals: list[Meal]) -> None:
        """Persist the complete meal list."""


@dataclass
class MealStore:
    """Authoritative collection of meals.

    Mutations are synchronous and run on the event loop that owns the store,
    so they never interleave with each other. Other execution contexts must
    hand work to that loop before calling a mutating method.
    """

    repository: MealRepository
    aggregates: AggregateEngine
    events: EventChannel
    clock: Clock
    _meals: dict[UUID, Meal] = field(init=False)

    def __post_init__(self) -> None:
        self._meals = {meal.id: meal for meal in self.repository.load_meals()}

    def create_loading_meal(self, transcript: str | None = None) -> UUID:
        """Insert a pending meal and return its id."""
        meal = Meal(created_at=self.clock.now(), transcript=transcript)
        self._commit({**self._meals, meal.id: meal})
        logger.info("Created loading meal %s", meal.id)
        self.events.publish(
            MealEvent(kind="created", meal_id=meal.id, day=self._day_of(meal))
        )
        return meal.id

    def attach_result(
        self, meal_id: UUID, result: SuccessResult | FailureResult
    ) -> bool:
        """Store a meal's analysis result.

        Returns False without changing anything when the meal no longer exists
        or already holds a result, so duplicate deliveries are harmless.
        """
        meal = self._meals.get(meal_id)
        if meal is None:
            logger.info("Ignoring result for missing meal %s", meal_id)
            return False
        if meal.is_resolved:
            logger.info("Ignoring duplicate result for meal %s", meal_id)
            return False

        update: dict[str, object] = {"result": result, "is_loading": False}
        if isinstance(result, SuccessResult):
            update["title"] = title_from_description(result.analysis.description)
        resolved = meal.model_copy(update=update)
        self._commit({**self._meals, meal_id: resolved})
        day = self._day_of(resolved)
        if isinstance(result, SuccessResult):
            self.aggregates.add(day, result.analysis)
        logger.info("Attached %s result to meal %s", result.status, meal_id)
        self.events.publish(MealEvent(kind="updated", meal_id=meal_id, day=day))
        return True

    def delete_meal(self, meal_id: UUID) -> Meal | None:
        """Remove a meal and take its analysis out of the daily totals."""
        meal = self._meals.get(meal_id)
        if meal is None:
            return None
        remaining = dict(self._meals)
        del remaining[meal_id]
        self._commit(remaining)
        day = self._day_of(meal)
        if meal.analysis is not None:
            self.aggregates.subtract(day, meal.analysis)
        logger.info("Deleted meal %s", meal_id)
        self.events.publish(MealEvent(kind="deleted", meal_id=meal_id, day=day))
        return meal

    def update_transcript(self, meal_id: UUID, transcript: str) -> Meal | None:
        """Replace the stored transcript of a meal."""
        meal = self._meals.get(meal_id)
        if meal is None:
            return None
        updated = meal.model_copy(update={"transcript": transcript})
        self._commit({**self._meals, meal_id: updated})
        self.events.publish(
            MealEvent(kind="updated", meal_id=meal_id, day=self._day_of(updated))
        )
        return updated

    def get_meal(self, meal_id: UUID) -> Meal | None:
        return self._meals.get(meal_id)

    def all_meals(self) -> list[Meal]:
        return sorted(self._meals.values(), key=lambda meal: meal.created_at)

    def loading_meals(self) -> list[Meal]:
        """Return meals still waiting for an analysis."""
        return [meal for meal in self.all_meals() if meal.is_loading]

    def meals_for_date(self, day: date) -> list[Meal]:
        """Return the meals logged on a day, oldest first."""
        return [meal for meal in self.all_meals() if self._day_of(meal) == day]

    def totals_for_date(self, day: date) -> DailyTotals:
        """Return the incrementally maintained totals for a day."""
        return self.aggregates.totals_for(day)

    def recompute_totals_for_date(self, day: date) -> DailyTotals:
        """Return totals for a day by summing its successful meals."""
        analyses = [
            meal.analysis
            for meal in self.meals_for_date(day)
            if meal.analysis is not None
        ]
        goal = self.aggregates.totals_for(day).goal_calories
        return sum_analyses(day, analyses, goal)

    def reconcile_totals(self) -> list[date]:
        """Rebuild cached totals that disagree with the meal list.

        Days with cached totals but no meals left are checked too. Returns the
        days that were corrected.
        """
        days = self._meal_days() | set(self.aggregates.days())
        corrected: list[date] = []
        for day in sorted(days):
            expected = self.recompute_totals_for_date(day)
            if not _totals_match(self.aggregates.totals_for(day), expected):
                logger.warning("Rebuilding daily totals for %s", day)
                self.aggregates.replace_totals(expected)
                corrected.append(day)
        return corrected

    def reset_all(self) -> None:
        """Remove every meal and clear the totals of every day, keeping goals."""
        days = self._meal_days() | set(self.aggregates.days())
        days.add(self.aggregates.today().day)
        self._commit({})
        for day in sorted(days):
            self.aggregates.clear(day)
        logger.info("All meal data reset")
        self.events.publish(MealEvent(kind="reset", meal_id=None, day=None))

    def _day_of(self, meal: Meal) -> date:
        return meal.local_day(self.clock.tz)

    def _meal_days(self) -> set[date]:
        return {self._day_of(meal) for meal in self._meals.values()}

    def _commit(self, meals: dict[UUID, Meal]) -> None:
        # Memory only changes once the new list is saved.
        self.repository.save_meals(
            sorted(meals.values(), key=lambda meal: meal.created_at)
        )
        self._meals = meals


TOTALS_TOLERANCE = 1e-6


def _totals_match(left: DailyTotals, right: DailyTotals) -> bool:
    return all(
        abs(a - b) <= TOTALS_TOLERANCE
        for a, b in (
            (left.calories, right.calories),
            (left.protein_g, right.protein_g),
            (left.carbs_g, right.carbs_g),
            (left.fat_g, right.fat_g),
        )
    )
