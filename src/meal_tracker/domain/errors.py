"""Error taxonomy for the meal logging pipeline."""

from uuid import UUID


class MealTrackerError(Exception):
    """Base class for all pipeline errors."""

    default_message = "Something went wrong."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        """User-facing message for the error."""
        return str(self)


class AudioError(MealTrackerError):
    """Failures while capturing microphone audio."""


class PermissionDeniedError(AudioError):
    default_message = "Microphone access denied."


class NoSignificantAudioError(AudioError):
    default_message = "No speech detected. Please try again."


class RecordingFailedError(AudioError):
    default_message = "Failed to start recording."


class TranscriptionError(MealTrackerError):
    """Failures while turning recorded audio into text."""


class ModelNotLoadedError(TranscriptionError):
    default_message = "Transcription model not loaded. Please wait for initialization."


class NoSpeechDetectedError(TranscriptionError):
    default_message = "No speech detected in the audio."


class TranscriptionFailedError(TranscriptionError):
    default_message = "Transcription failed. Please try again."


class DispatchError(MealTrackerError):
    """Failures after a meal has been handed to the dispatcher."""


class NoAuthenticatedUserError(DispatchError):
    default_message = "No authenticated user found. Please sign in to continue."


class TransportFailedError(DispatchError):
    default_message = "The analysis request failed."


class DecodeFailedError(DispatchError):
    default_message = "The analysis response could not be decoded."


class RecoveryError(MealTrackerError):
    """Problems found while reconciling persisted state on start."""


class OrphanedTaskError(RecoveryError):
    """A loading meal whose pending task record was lost."""

    def __init__(self, meal_id: UUID) -> None:
        super().__init__(f"Meal {meal_id} has no pending analysis task")
        self.meal_id = meal_id


class InvalidTransitionError(MealTrackerError):
    """Raised when the processing state machine is driven out of order."""
