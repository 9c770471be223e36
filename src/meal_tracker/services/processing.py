"""Live recording interaction: state machine and pipeline orchestration."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from uuid import UUID

from meal_tracker.domain.errors import (
    AudioError,
    InvalidTransitionError,
    NoAuthenticatedUserError,
    TranscriptionError,
)
from meal_tracker.domain.nutrition import FailureResult, SuccessResult
from meal_tracker.domain.processing import (
    Analyzing,
    Completed,
    Error,
    Idle,
    ProcessingState,
    Recording,
    Transcribing,
    is_processing,
)
from meal_tracker.domain.stats import DailyTotals
from meal_tracker.domain.tasks import TaskOutcome
from meal_tracker.services.audio import AudioCaptureSession, RecordedAudio
from meal_tracker.services.dispatcher import DurableTaskDispatcher
from meal_tracker.services.meals import MealStore
from meal_tracker.services.transcription import TranscriptionService
from meal_tracker.services.users import ProfileService

logger = logging.getLogger(__name__)

StateListener = Callable[[ProcessingState], None]

# Moving to Idle is always allowed and is not listed here.
_TRANSITIONS: dict[type, tuple[type, ...]] = {
    Idle: (Recording,),
    Recording: (Transcribing, Error),
    Transcribing: (Analyzing, Error),
    Analyzing: (Completed, Error),
    Completed: (),
    Error: (Recording,),
}


@dataclass
class ProcessingStateMachine:
    """Tracks the state of the single live recording interaction."""

    state: ProcessingState = field(default_factory=Idle)
    _listeners: list[StateListener] = field(default_factory=list, init=False)

    @property
    def is_processing(self) -> bool:
        return is_processing(self.state)

    def can_transition(self, new_state: ProcessingState) -> bool:
        if isinstance(new_state, Idle):
            return True
        return isinstance(new_state, _TRANSITIONS[type(self.state)])

    def transition(self, new_state: ProcessingState) -> ProcessingState:
        """Move to a new state and notify listeners."""
        if not self.can_transition(new_state):
            raise InvalidTransitionError(
                f"Cannot move from {self.state.name} to {new_state.name}"
            )
        self.state = new_state
        logger.debug("Processing state is now %s", new_state.name)
        for listener in list(self._listeners):
            try:
                listener(new_state)
            except Exception:
                logger.exception("Processing state listener failed")
        return new_state

    def reset(self) -> ProcessingState:
        return self.transition(Idle())

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe


@dataclass(frozen=True)
class MealSubmission:
    """A logged meal and the future of its analysis outcome."""

    meal_id: UUID
    outcome: asyncio.Future[TaskOutcome]


@dataclass
class MealLogService:
    """Entry point for logging meals from any input path."""

    store: MealStore
    dispatcher: DurableTaskDispatcher
    profiles: ProfileService

    def log_meal(self, transcript: str) -> MealSubmission:
        """Create a loading meal and submit it for analysis.

        The meal exists before the user is resolved, so a missing user is
        reported through the dispatcher's failure path.
        """
        text = " ".join(transcript.split())
        if not text:
            raise ValueError("Meal description must not be empty")
        meal_id = self.store.create_loading_meal(text)
        try:
            user_id = self.profiles.require_user_id()
        except NoAuthenticatedUserError as exc:
            logger.warning("Cannot submit meal %s: %s", meal_id, exc)
            return MealSubmission(meal_id, self.dispatcher.fail(meal_id, exc))
        return MealSubmission(meal_id, self.dispatcher.submit(meal_id, text, user_id))

    def sync_goal_calories(self) -> DailyTotals:
        """Copy the profile's calorie goal into today's totals."""
        return self.store.aggregates.sync_goal_calories(self.profiles.goal_calories())


@dataclass
class VoiceMealFlow:
    """Drives recording, transcription and analysis for one interaction.

    Cancelling before the meal is submitted stops the pipeline. Once the
    meal is submitted, cancelling only detaches the interaction; the
    analysis still completes in the background.
    """

    capture: AudioCaptureSession
    transcriber: TranscriptionService
    meal_log: MealLogService
    machine: ProcessingStateMachine = field(default_factory=ProcessingStateMachine)
    _job: asyncio.Task[ProcessingState] | None = field(default=None, init=False)
    _active_meal_id: UUID | None = field(default=None, init=False)

    @property
    def state(self) -> ProcessingState:
        return self.machine.state

    @property
    def active_meal_id(self) -> UUID | None:
        return self._active_meal_id

    async def start_recording(self) -> ProcessingState:
        """Begin a new recording."""
        if isinstance(self.machine.state, Completed):
            self.machine.reset()
        self.machine.transition(Recording())
        self._active_meal_id = None
        try:
            await self.capture.start()
        except AudioError as exc:
            logger.warning("Could not start recording: %s", exc)
            return self.machine.transition(Error(exc.message))
        return self.machine.state

    async def stop_recording(self) -> ProcessingState:
        """Stop recording and run the pipeline until the meal resolves."""
        if not isinstance(self.machine.state, Recording):
            raise InvalidTransitionError(
                f"Cannot stop recording while {self.machine.state.name}"
            )
        try:
            audio = await self.capture.stop()
        except AudioError as exc:
            logger.info("Recording rejected: %s", exc)
            return self.machine.transition(Error(exc.message))
        self.machine.transition(Transcribing())
        job = asyncio.get_running_loop().create_task(self._process(audio))
        self._job = job
        try:
            return await asyncio.shield(job)
        except asyncio.CancelledError:
            if job.cancelled():
                return self.machine.state
            raise
        finally:
            if self._job is job and job.done():
                self._job = None

    async def cancel(self) -> ProcessingState:
        """Abandon the current interaction and return to idle."""
        state = self.machine.state
        if isinstance(state, Recording):
            await self.capture.cancel()
        elif isinstance(state, Transcribing) and self._job is not None:
            self._job.cancel()
        elif isinstance(state, Analyzing):
            logger.info(
                "Detached from meal %s; analysis continues", self._active_meal_id
            )
        self._active_meal_id = None
        return self.machine.reset()

    async def _process(self, audio: RecordedAudio) -> ProcessingState:
        try:
            with audio as path:
                transcript = await self.transcriber.transcribe(path)
        except TranscriptionError as exc:
            logger.info("Transcription rejected: %s", exc)
            return self.machine.transition(Error(exc.message))

        self.machine.transition(Analyzing(transcript))
        submission = self.meal_log.log_meal(transcript)
        self._active_meal_id = submission.meal_id
        outcome = await asyncio.shield(submission.outcome)
        if self._active_meal_id != submission.meal_id:
            return self.machine.state
        return self.machine.transition(self._final_state(transcript, outcome))

    def _final_state(self, transcript: str, outcome: TaskOutcome) -> ProcessingState:
        meal = self.meal_log.store.get_meal(outcome.meal_id)
        if meal is not None and isinstance(meal.result, SuccessResult | FailureResult):
            return Completed(transcript=transcript, result=meal.result)
        if outcome.status == "deleted":
            return Error("The meal was deleted before analysis finished.")
        return Error(outcome.message or "Meal analysis failed.")
