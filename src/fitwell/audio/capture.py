"""Microphone capture.

``sounddevice`` loads PortAudio when imported, so it is imported where the
device is touched rather than at module import.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

import numpy as np
import soundfile as sf
from loguru import logger

from fitwell.audio.files import temp_audio_path
from fitwell.errors import CaptureError
from fitwell.types import make_id

CAPTURE_DTYPE = "int16"


@dataclass(eq=False)
class CaptureHandle:
    """One in-flight recording. Compared by identity, never by value."""

    sample_rate: int
    id: str = field(default_factory=lambda: make_id("rec_"))
    started_at: float = field(default_factory=time.monotonic)
    stream: Any = None
    frames: list[Any] = field(default_factory=list)


class Recorder(Protocol):
    """Capture API the session drives."""

    async def request_permission(self) -> bool: ...

    async def start(self) -> CaptureHandle: ...

    async def stop(self, handle: CaptureHandle) -> Path | None: ...


class SoundDeviceRecorder:
    """Records the default input device to a WAV file."""

    def __init__(self, *, sample_rate: int = 16000, channels: int = 1, directory: Path | None = None) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._directory = directory

    async def request_permission(self) -> bool:
        try:
            import sounddevice as sd

            sd.check_input_settings(samplerate=self._sample_rate, channels=self._channels, dtype=CAPTURE_DTYPE)
        except (OSError, ValueError) as exc:
            # PortAudioError is an OSError; a missing PortAudio library is too.
            logger.warning("capture.permission.denied error={}", exc)
            return False
        return True

    async def start(self) -> CaptureHandle:
        handle = CaptureHandle(sample_rate=self._sample_rate)

        def _callback(indata: np.ndarray, _frames: int, _time_info: Any, status: Any) -> None:
            if status:
                logger.debug("capture.stream.status handle={} status={}", handle.id, status)
            # PortAudio reuses the buffer after the callback returns.
            handle.frames.append(indata.copy())

        try:
            import sounddevice as sd

            stream = sd.InputStream(
                samplerate=self._sample_rate,
                channels=self._channels,
                dtype=CAPTURE_DTYPE,
                callback=_callback,
            )
            stream.start()
        except (OSError, ValueError) as exc:
            raise CaptureError(f"microphone unavailable: {exc}") from exc

        handle.stream = stream
        logger.debug("capture.start handle={} rate={}", handle.id, self._sample_rate)
        return handle

    async def stop(self, handle: CaptureHandle) -> Path | None:
        stream = handle.stream
        if stream is None:
            return None
        try:
            stream.stop()
            stream.close()
        except OSError:
            logger.opt(exception=True).warning("capture.stop.error handle={}", handle.id)
            return None
        finally:
            handle.stream = None

        if not handle.frames:
            return None
        audio = np.concatenate(handle.frames, axis=0)
        path = temp_audio_path("fitwell_rec_", "wav", self._directory)
        try:
            await asyncio.to_thread(sf.write, str(path), audio, handle.sample_rate)
        except (OSError, RuntimeError):
            logger.opt(exception=True).warning("capture.write.error handle={}", handle.id)
            return None
        logger.debug(
            "capture.stop handle={} seconds={:.1f} path={}",
            handle.id,
            time.monotonic() - handle.started_at,
            path,
        )
        return path


class DisabledRecorder:
    """Recorder for text-only sessions: permission is always refused."""

    async def request_permission(self) -> bool:
        return False

    async def start(self) -> CaptureHandle:
        raise CaptureError("voice input is disabled")

    async def stop(self, handle: CaptureHandle) -> Path | None:
        return None
