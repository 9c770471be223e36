"""FastAPI application factory."""

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from uuid import UUID

from fastapi import FastAPI, HTTPException, Request, status

from meal_tracker.api.models import (
    MealAccepted,
    MealCreate,
    MealUpdate,
    RecordingView,
    TotalsView,
)
from meal_tracker.app_logging import configure_logging
from meal_tracker.containers import AppContainer
from meal_tracker.domain.errors import InvalidTransitionError
from meal_tracker.domain.meals import Meal
from meal_tracker.domain.processing import Recording
from meal_tracker.services.clock import today


def create_app(container: AppContainer) -> FastAPI:  # noqa: PLR0915
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)
    background: set[asyncio.Task[object]] = set()

    def _track(task: asyncio.Task[object]) -> None:
        background.add(task)
        task.add_done_callback(_finished)

    def _finished(task: asyncio.Task[object]) -> None:
        background.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Background task failed", exc_info=task.exception())

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        report = state_container.recovery_manager.recover()
        logger.info(
            "Recovery finished: %d orphan(s), %d resumed, %d day(s) rebuilt",
            len(report.orphans),
            len(report.resumed),
            len(report.rebuilt_days),
        )
        try:
            state_container.meal_log_service.sync_goal_calories()
        except Exception:
            logger.exception("Failed to sync calorie goal from profile")
        yield
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    def _recording_view(state_container: AppContainer) -> RecordingView:
        flow = state_container.voice_flow
        return RecordingView.from_state(
            flow.state, flow.capture.current_level, flow.active_meal_id
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/meals", status_code=status.HTTP_202_ACCEPTED)
    async def create_meal(payload: MealCreate, request: Request) -> MealAccepted:
        """Log a typed meal description and start its analysis."""
        state_container: AppContainer = request.app.state.container
        try:
            submission = state_container.meal_log_service.log_meal(payload.text)
        except ValueError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)
            ) from exc
        outcome = submission.outcome
        current = outcome.result().status if outcome.done() else "pending"
        return MealAccepted(meal_id=submission.meal_id, status=current)

    @app.get("/meals")
    async def list_meals(request: Request, day: date | None = None) -> list[Meal]:
        """Return meals logged on a day, today by default."""
        state_container: AppContainer = request.app.state.container
        resolved_day = day or today(state_container.clock)
        return state_container.meal_store.meals_for_date(resolved_day)

    @app.get("/meals/{meal_id}")
    async def get_meal(meal_id: UUID, request: Request) -> Meal:
        state_container: AppContainer = request.app.state.container
        meal = state_container.meal_store.get_meal(meal_id)
        if meal is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return meal

    @app.patch("/meals/{meal_id}")
    async def update_meal(
        meal_id: UUID, payload: MealUpdate, request: Request
    ) -> Meal:
        """Replace a meal's stored transcript."""
        state_container: AppContainer = request.app.state.container
        meal = state_container.meal_store.update_transcript(
            meal_id, payload.transcript
        )
        if meal is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
        return meal

    @app.delete("/meals/{meal_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_meal(meal_id: UUID, request: Request) -> None:
        """Delete a meal and remove it from its day's totals."""
        state_container: AppContainer = request.app.state.container
        if state_container.meal_store.delete_meal(meal_id) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)

    @app.post("/meals/reset", status_code=status.HTTP_204_NO_CONTENT)
    async def reset_meals(request: Request) -> None:
        """Remove every meal and clear today's totals."""
        state_container: AppContainer = request.app.state.container
        state_container.meal_store.reset_all()

    @app.get("/totals")
    async def get_totals(request: Request, day: date | None = None) -> TotalsView:
        """Return nutrition totals for a day, today by default."""
        state_container: AppContainer = request.app.state.container
        aggregates = state_container.meal_store.aggregates
        totals = aggregates.today() if day is None else aggregates.totals_for(day)
        return TotalsView.from_totals(totals)

    @app.post("/totals/goal/sync")
    async def sync_goal(request: Request) -> TotalsView:
        """Refresh today's calorie goal from the user profile."""
        state_container: AppContainer = request.app.state.container
        totals = state_container.meal_log_service.sync_goal_calories()
        return TotalsView.from_totals(totals)

    @app.get("/recording")
    async def recording_state(request: Request) -> RecordingView:
        """Return the live recording state."""
        return _recording_view(request.app.state.container)

    @app.post("/recording/start")
    async def start_recording(request: Request) -> RecordingView:
        """Start a voice recording."""
        state_container: AppContainer = request.app.state.container
        try:
            await state_container.voice_flow.start_recording()
        except InvalidTransitionError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT, detail=exc.message
            ) from exc
        return _recording_view(state_container)

    @app.post("/recording/stop", status_code=status.HTTP_202_ACCEPTED)
    async def stop_recording(request: Request) -> RecordingView:
        """Stop recording and process the meal in the background."""
        state_container: AppContainer = request.app.state.container
        flow = state_container.voice_flow
        if not isinstance(flow.state, Recording):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Cannot stop recording while {flow.state.name}",
            )
        _track(asyncio.create_task(flow.stop_recording()))
        await asyncio.sleep(0)
        return _recording_view(state_container)

    @app.post("/recording/cancel")
    async def cancel_recording(request: Request) -> RecordingView:
        """Abandon the live interaction."""
        state_container: AppContainer = request.app.state.container
        await state_container.voice_flow.cancel()
        return _recording_view(state_container)

    return app
