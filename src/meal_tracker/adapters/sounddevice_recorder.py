"""Microphone recorder backed by sounddevice and soundfile."""

import logging
import math
import threading
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any

import numpy as np
import soundfile as sf

from meal_tracker.domain.errors import PermissionDeniedError, RecordingFailedError
from meal_tracker.services.audio import AudioRecorder

logger = logging.getLogger(__name__)

SILENCE_FLOOR_DB = -60.0


def normalized_level(block: np.ndarray) -> float:
    """Map the RMS power of an audio block onto 0..1 (-60 dBFS is 0)."""
    if block.size == 0:
        return 0.0
    rms = float(np.sqrt(np.mean(np.square(block, dtype=np.float64))))
    if rms <= 0.0:
        return 0.0
    decibels = 20.0 * math.log10(rms)
    return min(1.0, max(0.0, (decibels - SILENCE_FLOOR_DB) / -SILENCE_FLOOR_DB))


def _load_sounddevice() -> ModuleType:
    # Importing sounddevice fails with OSError when PortAudio is not installed.
    try:
        import sounddevice
    except OSError as exc:
        raise RecordingFailedError("Audio input is not available.") from exc
    return sounddevice


@dataclass
class SoundDeviceRecorder(AudioRecorder):
    """Captures mono audio from the default input device into a WAV file."""

    sample_rate: int = 16000
    channels: int = 1
    device: int | str | None = None
    _stream: Any = field(default=None, init=False)
    _path: Path | None = field(default=None, init=False)
    _frames: list[np.ndarray] = field(default_factory=list, init=False)
    _level: float = field(default=0.0, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def start(self, path: Path) -> None:
        """Open the input stream and start buffering audio."""
        sd = _load_sounddevice()
        with self._lock:
            self._frames = []
            self._level = 0.0
        try:
            stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                device=self.device,
                callback=self._on_audio,
            )
            stream.start()
        except sd.PortAudioError as exc:
            if "permission" in str(exc).lower():
                raise PermissionDeniedError from exc
            raise RecordingFailedError(f"Failed to start recording: {exc}") from exc
        self._stream = stream
        self._path = path

    def current_level(self) -> float:
        with self._lock:
            return self._level

    def stop(self) -> None:
        """Close the stream and write the buffered audio to disk."""
        stream, path = self._stream, self._path
        self._stream = None
        self._path = None
        if stream is None or path is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:
            raise RecordingFailedError(f"Failed to stop recording: {exc}") from exc
        with self._lock:
            frames, self._frames = self._frames, []
        self._write(path, frames)

    def _write(self, path: Path, frames: list[np.ndarray]) -> None:
        if frames:
            audio = np.concatenate(frames)
        else:
            audio = np.zeros((0, self.channels), dtype=np.float32)
        sf.write(str(path), audio, self.sample_rate, format="WAV")
        logger.debug("Wrote %d samples to %s", len(audio), path)

    def _on_audio(
        self, indata: np.ndarray, frames: int, time_info: object, status: object
    ) -> None:
        # Runs on the PortAudio thread.
        if status:
            logger.debug("Input stream status: %s", status)
        block = indata.copy()
        level = normalized_level(block)
        with self._lock:
            self._frames.append(block)
            self._level = level
