"""Audio file playback."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Protocol

import soundfile as sf
from loguru import logger


class AudioPlayer(Protocol):
    """Plays one file at a time and resolves when it finishes."""

    async def play(self, path: Path) -> None: ...

    async def stop(self) -> None: ...


class SoundDevicePlayer:
    """Plays decoded audio on the default output device."""

    def __init__(self) -> None:
        self._current: object | None = None

    @property
    def playing(self) -> bool:
        return self._current is not None

    async def play(self, path: Path) -> None:
        import sounddevice as sd

        await self.stop()
        data, sample_rate = await asyncio.to_thread(sf.read, str(path), dtype="float32")
        token = object()
        self._current = token
        logger.debug("playback.start path={} rate={}", path, sample_rate)
        try:
            sd.play(data, sample_rate)
            await asyncio.to_thread(sd.wait)
        finally:
            if self._current is token:
                self._current = None

    async def stop(self) -> None:
        if self._current is None:
            return
        import sounddevice as sd

        self._current = None
        sd.stop()
        logger.debug("playback.stop")


class SilentPlayer:
    async def play(self, path: Path) -> None:
        logger.debug("playback.silent path={}", path)

    async def stop(self) -> None:
        return None
