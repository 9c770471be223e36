"""Current user and profile lookups."""

from dataclasses import dataclass
from typing import Protocol

from meal_tracker.domain.errors import NoAuthenticatedUserError
from meal_tracker.domain.stats import DEFAULT_GOAL_CALORIES


class ProfileRepository(Protocol):
    """Source of the signed-in user and their profile."""

    def get_current_user_id(self) -> str | None:
        """Return the authenticated user's id, if any."""

    def get_target_calories(self, user_id: str) -> float | None:
        """Return the user's daily calorie target, if set."""


@dataclass
class ProfileService:
    """Resolves the current user and their calorie goal."""

    repository: ProfileRepository
    default_goal_calories: float = DEFAULT_GOAL_CALORIES

    def require_user_id(self) -> str:
        """Return the current user id or raise when nobody is signed in."""
        user_id = self.repository.get_current_user_id()
        if not user_id:
            raise NoAuthenticatedUserError
        return user_id

    def goal_calories(self) -> float:
        """Return the profile calorie goal, falling back to the default."""
        user_id = self.repository.get_current_user_id()
        if not user_id:
            return self.default_goal_calories
        target = self.repository.get_target_calories(user_id)
        if target is None or target <= 0:
            return self.default_goal_calories
        return float(target)
