"""Tests for HTTP-based adapters."""

import asyncio
import json
from collections.abc import Callable
from pathlib import Path

import httpx
import openai
import pytest

from meal_tracker.adapters.http_analysis_client import HttpxAnalysisClient
from meal_tracker.adapters.openai_transcription_client import (
    OpenAITranscriptionClient,
)
from meal_tracker.domain.errors import (
    DecodeFailedError,
    TranscriptionFailedError,
    TransportFailedError,
)
from tests.conftest import TEST_ANON_KEY, analysis_payload

URL = "https://example.supabase.co/functions/v1/calculate-calories"


def _client(
    handler: Callable[[httpx.Request], httpx.Response],
    access_token: Callable[[], str | None] | None = None,
) -> HttpxAnalysisClient:
    transport = httpx.MockTransport(handler)
    return HttpxAnalysisClient(
        url=URL,
        api_key=TEST_ANON_KEY,
        http_client=httpx.AsyncClient(transport=transport),
        access_token=access_token,
    )


def test_analysis_client_posts_transcript() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=analysis_payload())

    client = _client(handler)
    body = asyncio.run(client.analyze("grilled chicken breast", "user-1"))

    assert body == analysis_payload()
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == URL
    assert json.loads(request.content) == {
        "transcribed_meal": "grilled chicken breast",
        "user_id": "user-1",
    }
    assert request.headers["apikey"] == TEST_ANON_KEY
    assert request.headers["authorization"] == f"Bearer {TEST_ANON_KEY}"


def test_analysis_client_prefers_session_token() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=analysis_payload())

    client = _client(handler, access_token=lambda: "session-token")
    asyncio.run(client.analyze("eggs on toast", "user-1"))

    assert seen[0].headers["authorization"] == "Bearer session-token"


def test_analysis_client_server_error_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(TransportFailedError):
        asyncio.run(_client(handler).analyze("eggs on toast", "user-1"))


def test_analysis_client_connection_error_is_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(TransportFailedError):
        asyncio.run(_client(handler).analyze("eggs on toast", "user-1"))


def test_analysis_client_non_json_is_decode_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    with pytest.raises(DecodeFailedError):
        asyncio.run(_client(handler).analyze("eggs on toast", "user-1"))


def test_analysis_client_close() -> None:
    client = _client(lambda request: httpx.Response(200, json={}))

    asyncio.run(client.close())

    assert client.http_client.is_closed


class _FakeTranscriptions:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.last_payload: dict[str, object] | None = None

    async def create(self, **kwargs):  # type: ignore[no-untyped-def]
        self.last_payload = kwargs
        if self.error is not None:
            raise self.error
        return type("Transcription", (), {"text": "two eggs and toast"})()


class _FakeOpenAI:
    def __init__(self, error: Exception | None = None) -> None:
        self.transcriptions = _FakeTranscriptions(error)
        self.audio = self


def test_openai_transcription_client_returns_text(tmp_path: Path) -> None:
    audio_path = tmp_path / "meal.wav"
    audio_path.write_bytes(b"RIFF")
    fake = _FakeOpenAI()
    client = OpenAITranscriptionClient(client=fake, model="whisper-1")

    text = asyncio.run(client.transcribe(audio_path))

    assert text == "two eggs and toast"
    assert fake.transcriptions.last_payload is not None
    assert fake.transcriptions.last_payload["model"] == "whisper-1"


def test_openai_transcription_client_wraps_errors(tmp_path: Path) -> None:
    audio_path = tmp_path / "meal.wav"
    audio_path.write_bytes(b"RIFF")
    request = httpx.Request("POST", "https://api.openai.com/v1/audio/transcriptions")
    error = openai.APIConnectionError(request=request)
    client = OpenAITranscriptionClient(client=_FakeOpenAI(error))

    with pytest.raises(TranscriptionFailedError):
        asyncio.run(client.transcribe(audio_path))


def test_openai_transcription_client_wraps_missing_file(tmp_path: Path) -> None:
    fake = _FakeOpenAI()
    client = OpenAITranscriptionClient(client=fake)

    with pytest.raises(TranscriptionFailedError):
        asyncio.run(client.transcribe(tmp_path / "missing.wav"))

    assert fake.transcriptions.last_payload is None
