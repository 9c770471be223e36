"""Microphone capture with level sampling and silence detection."""

import asyncio
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from types import TracebackType
from typing import Protocol

from meal_tracker.domain.errors import (
    AudioError,
    NoSignificantAudioError,
    RecordingFailedError,
)

logger = logging.getLogger(__name__)

DEFAULT_SILENCE_THRESHOLD = 0.25
DEFAULT_SAMPLE_INTERVAL = 0.05


class AudioRecorder(Protocol):
    """Interface for the audio input device."""

    def start(self, path: Path) -> None:
        """Begin recording into the given file.

        Raises PermissionDeniedError or RecordingFailedError.
        """

    def current_level(self) -> float:
        """Return the latest normalized input level between 0 and 1."""

    def stop(self) -> None:
        """Stop recording and finish writing the file."""


@dataclass
class RecordedAudio:
    """A finished recording that owns its temporary file.

    Use it as a context manager: the file is deleted when the block exits,
    whether the consumer succeeded, raised, or was cancelled.
    """

    path: Path
    peak_level: float

    def discard(self) -> None:
        self.path.unlink(missing_ok=True)

    def __enter__(self) -> Path:
        return self.path

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.discard()


@dataclass
class AudioCaptureSession:
    """Records to a fresh temporary file while sampling the input level."""

    recorder: AudioRecorder
    silence_threshold: float = DEFAULT_SILENCE_THRESHOLD
    sample_interval: float = DEFAULT_SAMPLE_INTERVAL
    temp_dir: Path | None = None
    _path: Path | None = field(default=None, init=False)
    _sampler: asyncio.Task[None] | None = field(default=None, init=False)
    _level: float = field(default=0.0, init=False)
    _peak: float = field(default=0.0, init=False)

    @property
    def is_recording(self) -> bool:
        return self._path is not None

    @property
    def current_level(self) -> float:
        return self._level

    @property
    def peak_level(self) -> float:
        return self._peak

    async def start(self) -> None:
        """Start recording and level sampling."""
        if self._path is not None:
            raise RecordingFailedError("A recording is already in progress.")
        path = _new_temp_file(self.temp_dir)
        try:
            self.recorder.start(path)
        except AudioError:
            path.unlink(missing_ok=True)
            raise
        except Exception as exc:
            path.unlink(missing_ok=True)
            raise RecordingFailedError from exc
        self._path = path
        self._level = 0.0
        self._peak = 0.0
        self._sampler = asyncio.get_running_loop().create_task(self._sample_levels())
        logger.info("Recording started at %s", path)

    async def stop(self) -> RecordedAudio:
        """Stop recording and return the captured audio.

        Raises NoSignificantAudioError, after deleting the file, when the
        input level never crossed the silence threshold.
        """
        path = self._path
        if path is None:
            raise RecordingFailedError("No recording in progress.")
        await self._stop_sampling()
        self._sample()
        self._path = None
        try:
            self.recorder.stop()
        except AudioError:
            path.unlink(missing_ok=True)
            raise
        except Exception as exc:
            path.unlink(missing_ok=True)
            raise RecordingFailedError from exc

        if self._peak < self.silence_threshold:
            logger.info("Discarding silent recording (peak %.2f)", self._peak)
            path.unlink(missing_ok=True)
            raise NoSignificantAudioError
        logger.info("Recording stopped (peak %.2f)", self._peak)
        return RecordedAudio(path=path, peak_level=self._peak)

    async def cancel(self) -> None:
        """Stop recording and throw the audio away."""
        path = self._path
        if path is None:
            return
        await self._stop_sampling()
        self._path = None
        try:
            self.recorder.stop()
        finally:
            path.unlink(missing_ok=True)
            logger.info("Recording cancelled")

    async def _sample_levels(self) -> None:
        while True:
            self._sample()
            await asyncio.sleep(self.sample_interval)

    def _sample(self) -> None:
        level = min(1.0, max(0.0, self.recorder.current_level()))
        self._level = level
        self._peak = max(self._peak, level)

    async def _stop_sampling(self) -> None:
        sampler = self._sampler
        self._sampler = None
        if sampler is None:
            return
        sampler.cancel()
        await asyncio.gather(sampler, return_exceptions=True)


def _new_temp_file(directory: Path | None) -> Path:
    fd, name = tempfile.mkstemp(prefix="meal-", suffix=".wav", dir=directory)
    os.close(fd)
    return Path(name)
