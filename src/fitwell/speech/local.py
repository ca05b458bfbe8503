"""Platform speech synthesis through the system's text-to-speech command."""

from __future__ import annotations

import asyncio
import contextlib
import shutil
from pathlib import Path

from loguru import logger

LOCAL_COMMANDS = ("espeak-ng", "espeak", "say")


class LocalSpeech:
    """Speaks with ``espeak-ng``, ``espeak`` or macOS ``say``.

    ``speak`` always returns normally: a missing binary or a failing process
    is logged and treated as finished speech.
    """

    def __init__(self, command: str | None = None) -> None:
        self._command = command
        self._process: asyncio.subprocess.Process | None = None

    def resolve_argv(self, language: str | None) -> list[str] | None:
        executable = self._find_executable()
        if executable is None:
            return None
        argv = [executable]
        if language and Path(executable).name.startswith("espeak"):
            argv.extend(["-v", language])
        return argv

    async def speak(self, text: str, *, language: str | None = None) -> None:
        argv = self.resolve_argv(language)
        if argv is None:
            logger.warning("tts.local.unavailable searched={}", ",".join(LOCAL_COMMANDS))
            return

        await self.stop()
        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                text,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as exc:
            logger.warning("tts.local.error command={} error={}", argv[0], exc)
            return

        self._process = process
        try:
            code = await process.wait()
        finally:
            if self._process is process:
                self._process = None
        if code:
            logger.debug("tts.local.exit command={} code={}", argv[0], code)

    async def stop(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()

    def _find_executable(self) -> str | None:
        if self._command:
            return shutil.which(self._command) or self._command
        for candidate in LOCAL_COMMANDS:
            if found := shutil.which(candidate):
                return found
        return None
