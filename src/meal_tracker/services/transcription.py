"""Speech-to-text stage of the voice pipeline."""

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from meal_tracker.domain.errors import ModelNotLoadedError, NoSpeechDetectedError

MIN_TRANSCRIPT_LENGTH = 5
MIN_TRANSCRIPT_WORDS = 2
FILLER_PHRASES = frozenset({"you", "um", "uh", "hmm", "ah", "okay", "ok", "test"})


class TranscriptionClient(Protocol):
    """Interface for speech-to-text engines."""

    async def transcribe(self, audio_path: Path) -> str:
        """Return the text spoken in an audio file."""


@dataclass
class TranscriptionService:
    """Transcribes recordings and rejects unusable transcripts."""

    client: TranscriptionClient | None

    @property
    def is_ready(self) -> bool:
        return self.client is not None

    async def transcribe(self, audio_path: Path) -> str:
        """Transcribe a recording into a meal description."""
        if self.client is None:
            raise ModelNotLoadedError
        text = await self.client.transcribe(audio_path)
        return validate_transcript(text)


def validate_transcript(text: str) -> str:
    """Return the cleaned transcript or raise if it cannot describe a meal."""
    cleaned = " ".join(text.split())
    if not cleaned:
        raise NoSpeechDetectedError
    if len(cleaned) < MIN_TRANSCRIPT_LENGTH:
        raise NoSpeechDetectedError("Transcription too short")
    if cleaned.lower().strip(".!?,") in FILLER_PHRASES:
        raise NoSpeechDetectedError("Invalid transcription")
    if len(cleaned.split(" ")) < MIN_TRANSCRIPT_WORDS:
        raise NoSpeechDetectedError("Needs more words")
    return cleaned
