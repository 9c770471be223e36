"""OpenAI speech-to-text client."""

from dataclasses import dataclass
from pathlib import Path

from openai import AsyncOpenAI, OpenAIError

from meal_tracker.domain.errors import TranscriptionFailedError
from meal_tracker.services.transcription import TranscriptionClient


@dataclass
class OpenAITranscriptionClient(TranscriptionClient):
    """Transcription client backed by the OpenAI audio API."""

    client: AsyncOpenAI
    model: str = "whisper-1"

    @classmethod
    def create(
        cls, api_key: str, model: str = "whisper-1"
    ) -> "OpenAITranscriptionClient":
        """Create an OpenAI transcription client."""
        return cls(client=AsyncOpenAI(api_key=api_key), model=model)

    async def transcribe(self, audio_path: Path) -> str:
        """Upload a recording and return its transcript."""
        try:
            with audio_path.open("rb") as audio_file:
                response = await self.client.audio.transcriptions.create(
                    model=self.model, file=audio_file
                )
        except (OpenAIError, OSError) as exc:
            raise TranscriptionFailedError(f"Transcription failed: {exc}") from exc
        return response.text

    async def close(self) -> None:
        await self.client.close()
