"""JSON file persistence for meals, daily totals and pending tasks."""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any
from uuid import UUID

from pydantic import TypeAdapter, ValidationError

from meal_tracker.domain.meals import Meal
from meal_tracker.domain.stats import DailyTotals
from meal_tracker.domain.tasks import PendingTask
from meal_tracker.services.aggregates import DailyTotalsRepository
from meal_tracker.services.dispatcher import PendingTaskRepository
from meal_tracker.services.meals import MealRepository

logger = logging.getLogger(__name__)

MEALS_FILE = "meals.json"
TOTALS_FILE = "daily_totals.json"
TASKS_FILE = "pending_tasks.json"


@dataclass
class JsonDocument:
    """A JSON file replaced atomically on every write.

    A missing file reads as None. An unreadable or invalid file is logged and
    also reads as None so that start-up never fails on corrupt data.
    """

    path: Path
    adapter: TypeAdapter[Any]

    def load(self) -> Any:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError:
            logger.warning("Could not read %s", self.path, exc_info=True)
            return None
        try:
            return self.adapter.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "Ignoring corrupt file %s (%d error(s))", self.path, exc.error_count()
            )
            return None

    def save(self, value: object) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self.adapter.dump_json(value, by_alias=True, indent=2)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


@dataclass
class JsonMealRepository(MealRepository):
    """Stores the meal list in a single JSON file."""

    path: Path
    _document: JsonDocument = field(init=False)

    def __post_init__(self) -> None:
        self._document = JsonDocument(self.path, TypeAdapter(list[Meal]))

    def load_meals(self) -> list[Meal]:
        return self._document.load() or []

    def save_meals(self, meals: list[Meal]) -> None:
        self._document.save(meals)


@dataclass
class JsonDailyTotalsRepository(DailyTotalsRepository):
    """Stores every day's totals in a single JSON file."""

    path: Path
    _document: JsonDocument = field(init=False)
    _cache: dict[date, DailyTotals] | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self._document = JsonDocument(
            self.path, TypeAdapter(dict[date, DailyTotals])
        )

    def load_totals(self) -> dict[date, DailyTotals]:
        return dict(self._records())

    def save_totals(self, totals: DailyTotals) -> None:
        records = self._records()
        records[totals.day] = totals
        self._document.save({day: records[day] for day in sorted(records)})

    def _records(self) -> dict[date, DailyTotals]:
        if self._cache is None:
            self._cache = self._document.load() or {}
        return self._cache


@dataclass
class JsonPendingTaskRepository(PendingTaskRepository):
    """Stores in-flight analysis tasks in a single JSON file."""

    path: Path
    _document: JsonDocument = field(init=False)

    def __post_init__(self) -> None:
        self._document = JsonDocument(
            self.path, TypeAdapter(dict[UUID, PendingTask])
        )

    def list_tasks(self) -> dict[UUID, PendingTask]:
        return self._document.load() or {}

    def put_task(self, task: PendingTask) -> None:
        tasks = self.list_tasks()
        tasks[task.meal_id] = task
        self._document.save(tasks)

    def delete_task(self, meal_id: UUID) -> None:
        tasks = self.list_tasks()
        if tasks.pop(meal_id, None) is not None:
            self._document.save(tasks)


def json_repositories(
    data_dir: Path,
) -> tuple[JsonMealRepository, JsonDailyTotalsRepository, JsonPendingTaskRepository]:
    """Create the three repositories rooted at a data directory."""
    return (
        JsonMealRepository(data_dir / MEALS_FILE),
        JsonDailyTotalsRepository(data_dir / TOTALS_FILE),
        JsonPendingTaskRepository(data_dir / TASKS_FILE),
    )
