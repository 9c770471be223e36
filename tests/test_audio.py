"""Tests for the audio capture session."""

import asyncio
from pathlib import Path

import pytest

from meal_tracker.domain.errors import (
    NoSignificantAudioError,
    PermissionDeniedError,
    RecordingFailedError,
)
from meal_tracker.services.audio import AudioCaptureSession, RecordedAudio
from tests.conftest import FakeAudioRecorder


def _session(recorder: FakeAudioRecorder, tmp_path: Path) -> AudioCaptureSession:
    return AudioCaptureSession(recorder, sample_interval=0.01, temp_dir=tmp_path)


def test_stop_returns_recording(recorder: FakeAudioRecorder, tmp_path: Path) -> None:
    session = _session(recorder, tmp_path)

    async def scenario() -> RecordedAudio:
        await session.start()
        assert session.is_recording
        await asyncio.sleep(0.03)
        return await session.stop()

    audio = asyncio.run(scenario())

    assert audio.path.exists()
    assert audio.path.parent == tmp_path
    assert audio.path.suffix == ".wav"
    assert audio.peak_level == pytest.approx(0.8)
    assert not session.is_recording
    with audio as path:
        assert path.read_bytes() == b"RIFF"
    assert not audio.path.exists()


def test_each_recording_uses_a_fresh_file(
    recorder: FakeAudioRecorder, tmp_path: Path
) -> None:
    session = _session(recorder, tmp_path)

    async def scenario() -> tuple[RecordedAudio, RecordedAudio]:
        await session.start()
        first = await session.stop()
        await session.start()
        second = await session.stop()
        return first, second

    first, second = asyncio.run(scenario())

    assert first.path != second.path


def test_silent_recording_is_discarded(
    recorder: FakeAudioRecorder, tmp_path: Path
) -> None:
    recorder.level = 0.1
    session = _session(recorder, tmp_path)

    async def scenario() -> None:
        await session.start()
        await asyncio.sleep(0.02)
        await session.stop()

    with pytest.raises(NoSignificantAudioError):
        asyncio.run(scenario())
    assert list(tmp_path.iterdir()) == []


def test_levels_are_clamped(recorder: FakeAudioRecorder, tmp_path: Path) -> None:
    recorder.level = 3.5
    session = _session(recorder, tmp_path)

    async def scenario() -> RecordedAudio:
        await session.start()
        return await session.stop()

    audio = asyncio.run(scenario())

    assert audio.peak_level == 1.0
    audio.discard()


def test_cancel_deletes_the_file(recorder: FakeAudioRecorder, tmp_path: Path) -> None:
    session = _session(recorder, tmp_path)

    async def scenario() -> None:
        await session.start()
        await session.cancel()

    asyncio.run(scenario())

    assert not session.is_recording
    assert recorder.stops == 1
    assert list(tmp_path.iterdir()) == []


def test_permission_denied_propagates(
    recorder: FakeAudioRecorder, tmp_path: Path
) -> None:
    recorder.start_error = PermissionDeniedError()
    session = _session(recorder, tmp_path)

    with pytest.raises(PermissionDeniedError):
        asyncio.run(session.start())
    assert list(tmp_path.iterdir()) == []


def test_device_error_becomes_recording_failed(
    recorder: FakeAudioRecorder, tmp_path: Path
) -> None:
    recorder.start_error = OSError("device busy")
    session = _session(recorder, tmp_path)

    with pytest.raises(RecordingFailedError):
        asyncio.run(session.start())
    assert not session.is_recording


def test_stop_without_recording_fails(
    recorder: FakeAudioRecorder, tmp_path: Path
) -> None:
    session = _session(recorder, tmp_path)

    with pytest.raises(RecordingFailedError):
        asyncio.run(session.stop())


def test_double_start_fails(recorder: FakeAudioRecorder, tmp_path: Path) -> None:
    session = _session(recorder, tmp_path)

    async def scenario() -> None:
        await session.start()
        try:
            await session.start()
        finally:
            await session.cancel()

    with pytest.raises(RecordingFailedError):
        asyncio.run(scenario())
