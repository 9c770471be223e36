"""States of the live recording interaction."""

from dataclasses import dataclass

from meal_tracker.domain.nutrition import FailureResult, SuccessResult


@dataclass(frozen=True)
class Idle:
    name = "idle"


@dataclass(frozen=True)
class Recording:
    name = "recording"


@dataclass(frozen=True)
class Transcribing:
    name = "transcribing"


@dataclass(frozen=True)
class Analyzing:
    transcript: str
    name = "analyzing"


@dataclass(frozen=True)
class Completed:
    transcript: str
    result: SuccessResult | FailureResult
    name = "completed"


@dataclass(frozen=True)
class Error:
    message: str
    name = "error"


ProcessingState = Idle | Recording | Transcribing | Analyzing | Completed | Error


def is_processing(state: ProcessingState) -> bool:
    """Return True while the interaction is busy."""
    return isinstance(state, Recording | Transcribing | Analyzing)


def display_text(state: ProcessingState) -> str:
    """Short status line for the live interaction."""
    match state:
        case Recording():
            return "Recording..."
        case Transcribing():
            return "Transcribing..."
        case Analyzing(transcript=transcript):
            return f"Calculating:\n{transcript}"
        case Completed(result=SuccessResult(analysis=analysis)):
            return f"{analysis.description} • {round(analysis.total_calories)} cal"
        case Completed(result=FailureResult(message=message)):
            return f"Error: {message}"
        case Error(message=message):
            return f"Error: {message}"
    return ""
