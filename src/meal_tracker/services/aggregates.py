"""Incremental per-day nutrition totals."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Protocol

from meal_tracker.domain.nutrition import NutritionAnalysis
from meal_tracker.domain.stats import DEFAULT_GOAL_CALORIES, DailyTotals
from meal_tracker.services.clock import Clock, today

logger = logging.getLogger(__name__)


class DailyTotalsRepository(Protocol):
    """Persistence interface for daily totals."""

    def load_totals(self) -> dict[date, DailyTotals]:
        """Return every persisted daily totals record keyed by day."""

    def save_totals(self, totals: DailyTotals) -> None:
        """Persist the record for a single day."""


@dataclass
class AggregateEngine:
    """Maintains daily totals with O(1) add/subtract updates.

    Records are materialized the first time a day is touched. Reads roll the
    current day over lazily: when the wall clock has moved past the cached
    day, today's record starts at zero and inherits only the calorie goal.
    """

    repository: DailyTotalsRepository
    clock: Clock
    default_goal_calories: float = DEFAULT_GOAL_CALORIES
    _records: dict[date, DailyTotals] = field(init=False)
    _current_day: date = field(init=False)

    def __post_init__(self) -> None:
        self._records = self.repository.load_totals()
        self._current_day = max(self._records, default=today(self.clock))
        if self._current_day not in self._records:
            self._records[self._current_day] = DailyTotals(
                day=self._current_day, goal_calories=self.default_goal_calories
            )

    @property
    def current_day(self) -> date:
        return self._current_day

    def today(self) -> DailyTotals:
        """Return today's totals, rolling over if the day changed."""
        self._roll_over_if_needed()
        return self._records[self._current_day]

    def totals_for(self, day: date) -> DailyTotals:
        """Return totals for a day without materializing it."""
        self._roll_over_if_needed()
        existing = self._records.get(day)
        if existing is not None:
            return existing
        return DailyTotals(day=day, goal_calories=self._goal_calories())

    def days(self) -> list[date]:
        """Return every day that has a totals record, oldest first."""
        return sorted(self._records)

    def add(self, day: date, analysis: NutritionAnalysis) -> DailyTotals:
        """Add an analysis to the totals of a day."""
        self._roll_over_if_needed()
        updated = self._materialize(day).plus(analysis)
        self._store(updated)
        return updated

    def subtract(self, day: date, analysis: NutritionAnalysis) -> DailyTotals:
        """Remove an analysis from the totals of a day."""
        self._roll_over_if_needed()
        updated = self._materialize(day).minus(analysis)
        self._store(updated)
        return updated

    def replace_totals(self, totals: DailyTotals) -> None:
        """Overwrite the sums of a day, keeping its goal."""
        self._roll_over_if_needed()
        current = self._materialize(totals.day)
        self._store(replace(totals, goal_calories=current.goal_calories))

    def clear(self, day: date) -> DailyTotals:
        """Reset a day's sums to zero while keeping its goal."""
        cleared = self._materialize(day).cleared()
        self._store(cleared)
        return cleared

    def sync_goal_calories(self, goal_calories: float) -> DailyTotals:
        """Apply the profile's calorie goal to today's record."""
        current = self.today()
        if current.goal_calories == goal_calories:
            return current
        updated = replace(current, goal_calories=goal_calories)
        self._store(updated)
        return updated

    def _roll_over_if_needed(self) -> None:
        now_day = today(self.clock)
        if now_day == self._current_day:
            return
        goal = self._goal_calories()
        logger.info(
            "Rolling daily totals over from %s to %s", self._current_day, now_day
        )
        self._current_day = now_day
        if now_day not in self._records:
            self._store(DailyTotals(day=now_day, goal_calories=goal))

    def _goal_calories(self) -> float:
        current = self._records.get(self._current_day)
        if current is None:
            return self.default_goal_calories
        return current.goal_calories

    def _materialize(self, day: date) -> DailyTotals:
        existing = self._records.get(day)
        if existing is not None:
            return existing
        return DailyTotals(day=day, goal_calories=self._goal_calories())

    def _store(self, totals: DailyTotals) -> None:
        self._records[totals.day] = totals
        self.repository.save_totals(totals)


def sum_analyses(
    day: date, analyses: list[NutritionAnalysis], goal: float
) -> DailyTotals:
    """Sum analyses into a fresh totals record."""
    total = DailyTotals(day=day, goal_calories=goal)
    for analysis in analyses:
        total = replace(
            total,
            calories=total.calories + analysis.total_calories,
            protein_g=total.protein_g + analysis.total_protein,
            carbs_g=total.carbs_g + analysis.total_carbs,
            fat_g=total.fat_g + analysis.total_fats,
        )
    return total
