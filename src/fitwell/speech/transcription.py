"""Speech-to-text for captured audio."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Protocol

import httpx
from loguru import logger

from fitwell.config import Settings

UNAVAILABLE_HOSTED = "(speech recognition not available in this runtime)"
RECOGNIZER_ERROR = "(speech recognition error)"
UNCONFIGURED = "(transcription unavailable - ASR not configured)"
NO_AUDIO = "(no audio)"
FAILED = "(transcription failed)"
ERROR = "(transcription error)"


class Recognizer(Protocol):
    """In-process recognition offered by a hosted runtime."""

    async def recognize(self, language: str) -> str: ...


class TranscriptionService:
    """Best-effort transcription. Failures come back as placeholder text."""

    def __init__(
        self,
        settings: Settings,
        client: httpx.AsyncClient,
        *,
        recognizer: Recognizer | None = None,
    ) -> None:
        self._settings = settings
        self._client = client
        self._recognizer = recognizer

    @property
    def configured(self) -> bool:
        return bool(self._settings.asr_url)

    async def transcribe(self, path: Path | None, *, language: str | None = None) -> str:
        if self._settings.runtime == "hosted":
            return await self._recognize(language or self._settings.language)

        if not self._settings.asr_url:
            logger.warning("asr.unconfigured returning placeholder")
            return UNCONFIGURED
        if path is None:
            logger.warning("asr.no_audio")
            return NO_AUDIO

        try:
            return await self._upload(self._settings.asr_url, path)
        except (httpx.HTTPError, OSError, ValueError) as exc:
            logger.error("asr.error path={} error={!r}", path, exc)
            return ERROR

    async def _recognize(self, language: str) -> str:
        if self._recognizer is None:
            return UNAVAILABLE_HOSTED
        try:
            return await self._recognizer.recognize(language)
        except Exception:
            logger.opt(exception=True).warning("asr.recognizer.error")
            return RECOGNIZER_ERROR

    async def _upload(self, url: str, path: Path) -> str:
        headers = {}
        if self._settings.asr_api_key:
            headers["Authorization"] = f"Bearer {self._settings.asr_api_key}"
        audio = await asyncio.to_thread(path.read_bytes)
        files = {"file": (path.name or "recording.wav", audio, "audio/wav")}

        response = await self._client.post(url, files=files, headers=headers)
        if not response.is_success:
            logger.warning("asr.non_ok status={} body={}", response.status_code, response.text[:200])
            return FAILED

        body = response.json()
        if isinstance(body, dict):
            for key in ("transcript", "text"):
                value = body.get(key)
                if isinstance(value, str) and value:
                    return value
        return json.dumps(body)
