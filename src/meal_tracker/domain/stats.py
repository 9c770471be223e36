"""Domain models for daily aggregates."""

from dataclasses import dataclass, replace
from datetime import date

from meal_tracker.domain.nutrition import NutritionAnalysis

DEFAULT_GOAL_CALORIES = 2000.0


@dataclass(frozen=True)
class DailyTotals:
    """Running nutrition sums for one calendar day."""

    day: date
    calories: float = 0.0
    protein_g: float = 0.0
    carbs_g: float = 0.0
    fat_g: float = 0.0
    goal_calories: float = DEFAULT_GOAL_CALORIES

    @property
    def remaining_calories(self) -> float:
        return self.goal_calories - self.calories

    def plus(self, analysis: NutritionAnalysis) -> "DailyTotals":
        """Return totals with the analysis added, clamped at zero."""
        return replace(
            self,
            calories=max(0.0, self.calories + analysis.total_calories),
            protein_g=max(0.0, self.protein_g + analysis.total_protein),
            carbs_g=max(0.0, self.carbs_g + analysis.total_carbs),
            fat_g=max(0.0, self.fat_g + analysis.total_fats),
        )

    def minus(self, analysis: NutritionAnalysis) -> "DailyTotals":
        """Return totals with the analysis removed, floored at zero."""
        return replace(
            self,
            calories=max(0.0, self.calories - analysis.total_calories),
            protein_g=max(0.0, self.protein_g - analysis.total_protein),
            carbs_g=max(0.0, self.carbs_g - analysis.total_carbs),
            fat_g=max(0.0, self.fat_g - analysis.total_fats),
        )

    def cleared(self) -> "DailyTotals":
        """Return zeroed totals for the same day keeping the goal."""
        return DailyTotals(day=self.day, goal_calories=self.goal_calories)
