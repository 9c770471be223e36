"""Durable background submission of meals for nutrition analysis."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Protocol
from uuid import UUID

from pydantic import ValidationError

from meal_tracker.domain.errors import (
    DecodeFailedError,
    DispatchError,
    TransportFailedError,
)
from meal_tracker.domain.nutrition import (
    AnalysisResponse,
    FailureResult,
    SuccessResult,
)
from meal_tracker.domain.tasks import PendingTask, TaskOutcome
from meal_tracker.services.clock import Clock
from meal_tracker.services.meals import MealStore
from meal_tracker.services.notifications import MealNotifier

logger = logging.getLogger(__name__)


class AnalysisClient(Protocol):
    """Interface for the remote nutrition analysis endpoint."""

    async def analyze(self, transcript: str, user_id: str) -> dict[str, object]:
        """Send a transcript and return the raw response body.

        Raises TransportFailedError when no usable response is produced.
        """


class PendingTaskRepository(Protocol):
    """Durable storage for in-flight analysis tasks."""

    def list_tasks(self) -> dict[UUID, PendingTask]:
        """Return every persisted task keyed by meal id."""

    def put_task(self, task: PendingTask) -> None:
        """Persist a task, replacing any record for the same meal."""

    def delete_task(self, meal_id: UUID) -> None:
        """Remove the task for a meal if present."""


def decode_analysis(payload: object) -> SuccessResult | FailureResult:
    """Decode the analysis endpoint's response body."""
    try:
        response = AnalysisResponse.model_validate(payload)
    except ValidationError as exc:
        raise DecodeFailedError(
            f"Invalid analysis response: {exc.error_count()} error(s)"
        ) from exc
    return response.to_result()


@dataclass
class DurableTaskDispatcher:
    """Submits meals for analysis so that every submission is resolved.

    The pending task is written before any network I/O. After a restart
    ``resume`` re-issues the surviving tasks; redelivery is safe because the
    meal store ignores results for meals that are already resolved.
    """

    client: AnalysisClient
    tasks: PendingTaskRepository
    store: MealStore
    notifier: MealNotifier
    clock: Clock
    max_task_age: timedelta = timedelta(days=1)
    _inflight: dict[UUID, asyncio.Task[None]] = field(
        default_factory=dict, init=False
    )
    _outcomes: dict[UUID, asyncio.Future[TaskOutcome]] = field(
        default_factory=dict, init=False
    )

    def submit(
        self, meal_id: UUID, transcript: str, user_id: str
    ) -> asyncio.Future[TaskOutcome]:
        """Persist a pending task and start the analysis in the background.

        Must be called from the event loop that owns the meal store. The
        returned future resolves exactly once with the task's outcome.
        """
        task = PendingTask(
            meal_id=meal_id,
            transcript=transcript,
            user_id=user_id,
            submitted_at=self.clock.now(),
        )
        self.tasks.put_task(task)
        logger.info("Submitted meal %s for analysis", meal_id)
        return self._launch(task)

    def fail(
        self, meal_id: UUID, error: DispatchError
    ) -> asyncio.Future[TaskOutcome]:
        """Resolve a meal that cannot be submitted through the failure path."""
        future = self._future_for(meal_id)
        self._resolve_failure(meal_id, error)
        return future

    def resume(self) -> list[UUID]:
        """Re-issue persisted tasks after a restart.

        Tasks whose meal is gone or already resolved are dropped. Tasks older
        than ``max_task_age`` are treated as never answered.
        """
        now = self.clock.now()
        resumed: list[UUID] = []
        for meal_id, task in self.tasks.list_tasks().items():
            meal = self.store.get_meal(meal_id)
            if meal is None or not meal.is_loading:
                logger.info("Dropping stale pending task for meal %s", meal_id)
                self.tasks.delete_task(meal_id)
                continue
            if now - task.submitted_at > self.max_task_age:
                self._resolve_failure(
                    meal_id, TransportFailedError("No analysis result arrived")
                )
                continue
            self._launch(task)
            resumed.append(meal_id)
        if resumed:
            logger.info("Resumed %d pending analysis task(s)", len(resumed))
        return resumed

    def outcome_for(self, meal_id: UUID) -> asyncio.Future[TaskOutcome] | None:
        """Return the outcome future of an in-flight task, if any."""
        return self._outcomes.get(meal_id)

    def pending_meal_ids(self) -> set[UUID]:
        return set(self.tasks.list_tasks())

    async def aclose(self) -> None:
        """Stop in-flight requests; persisted tasks are resumed next start."""
        jobs = list(self._inflight.values())
        for job in jobs:
            job.cancel()
        if jobs:
            await asyncio.gather(*jobs, return_exceptions=True)
        self._inflight.clear()

    def _launch(self, task: PendingTask) -> asyncio.Future[TaskOutcome]:
        future = self._future_for(task.meal_id)
        if task.meal_id in self._inflight:
            return future
        job = asyncio.get_running_loop().create_task(
            self._run(task), name=f"analyze-meal-{task.meal_id}"
        )
        self._inflight[task.meal_id] = job
        job.add_done_callback(lambda done: self._forget(task.meal_id, done))
        return future

    def _future_for(self, meal_id: UUID) -> asyncio.Future[TaskOutcome]:
        future = self._outcomes.get(meal_id)
        if future is None or future.done():
            future = asyncio.get_running_loop().create_future()
            self._outcomes[meal_id] = future
        return future

    def _forget(self, meal_id: UUID, job: asyncio.Task[None]) -> None:
        if self._inflight.get(meal_id) is job:
            del self._inflight[meal_id]

    async def _run(self, task: PendingTask) -> None:
        try:
            payload = await self.client.analyze(task.transcript, task.user_id)
            result = decode_analysis(payload)
        except DispatchError as exc:
            logger.warning("Analysis for meal %s failed: %s", task.meal_id, exc)
            self._resolve_failure(task.meal_id, exc)
            return
        except Exception as exc:
            logger.exception("Unexpected error analysing meal %s", task.meal_id)
            self._resolve_failure(task.meal_id, TransportFailedError(str(exc)))
            return
        try:
            self._deliver(task.meal_id, result)
        except Exception:
            # The task stays persisted and is retried by resume on next start.
            logger.exception("Could not store the result for meal %s", task.meal_id)
            self._settle(
                TaskOutcome(
                    meal_id=task.meal_id,
                    status="failure",
                    message="Could not save the meal analysis.",
                )
            )

    def _deliver(self, meal_id: UUID, result: SuccessResult | FailureResult) -> None:
        merged = self.store.attach_result(meal_id, result)
        self.tasks.delete_task(meal_id)
        if not merged:
            meal = self.store.get_meal(meal_id)
            if meal is None:
                outcome = TaskOutcome(meal_id=meal_id, status="deleted")
            elif meal.analysis is not None:
                outcome = TaskOutcome(meal_id=meal_id, status="success")
            else:
                outcome = TaskOutcome(
                    meal_id=meal_id, status="failure", message=meal.error_message
                )
            self._settle(outcome)
            return

        if isinstance(result, SuccessResult):
            self.notifier.meal_completed(
                result.analysis.description, result.analysis.total_calories
            )
            self._settle(TaskOutcome(meal_id=meal_id, status="success"))
        else:
            self.notifier.meal_failed()
            self._settle(
                TaskOutcome(meal_id=meal_id, status="failure", message=result.message)
            )
        logger.info("Analysis task for meal %s completed", meal_id)

    def _resolve_failure(self, meal_id: UUID, error: DispatchError) -> None:
        self.tasks.delete_task(meal_id)
        meal = self.store.get_meal(meal_id)
        if meal is not None and meal.is_loading:
            self.store.delete_meal(meal_id)
            self.notifier.meal_failed()
        self._settle(
            TaskOutcome(meal_id=meal_id, status="failure", message=error.message)
        )

    def _settle(self, outcome: TaskOutcome) -> None:
        future = self._outcomes.pop(outcome.meal_id, None)
        if future is not None and not future.done():
            future.set_result(outcome)
