"""Start-up reconciliation of meals against pending analysis tasks."""

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from meal_tracker.domain.errors import OrphanedTaskError
from meal_tracker.services.dispatcher import DurableTaskDispatcher
from meal_tracker.services.meals import MealStore

logger = logging.getLogger(__name__)


@dataclass
class RecoveryReport:
    """What recovery changed on start."""

    orphans: list[OrphanedTaskError] = field(default_factory=list)
    resumed: list[UUID] = field(default_factory=list)
    rebuilt_days: list[date] = field(default_factory=list)

    @property
    def orphaned_meal_ids(self) -> list[UUID]:
        return [orphan.meal_id for orphan in self.orphans]


@dataclass
class RecoveryManager:
    """Removes loading meals that lost their pending task.

    A loading meal without a task record can never be resolved, so it is
    deleted instead of being shown as loading forever. No notification is
    sent for these.
    """

    store: MealStore
    dispatcher: DurableTaskDispatcher

    def purge_orphans(self) -> list[OrphanedTaskError]:
        """Delete loading meals with no matching pending task."""
        pending = self.dispatcher.pending_meal_ids()
        orphans: list[OrphanedTaskError] = []
        for meal in self.store.loading_meals():
            if meal.id in pending:
                continue
            orphan = OrphanedTaskError(meal.id)
            logger.warning("%s; removing it", orphan)
            self.store.delete_meal(meal.id)
            orphans.append(orphan)
        if orphans:
            logger.info("Removed %d orphaned loading meal(s)", len(orphans))
        return orphans

    def recover(self) -> RecoveryReport:
        """Reconcile persisted state and resume surviving tasks.

        Must run on the event loop that owns the meal store, before any new
        meals are logged.
        """
        orphans = self.purge_orphans()
        rebuilt_days = self.store.reconcile_totals()
        resumed = self.dispatcher.resume()
        return RecoveryReport(
            orphans=orphans, resumed=resumed, rebuilt_days=rebuilt_days
        )
