"""Speech synthesis provider chain."""

from __future__ import annotations

import asyncio
import base64
import binascii
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx
from loguru import logger

from fitwell.audio.files import discard, write_audio_bytes
from fitwell.audio.playback import AudioPlayer
from fitwell.config import Settings
from fitwell.errors import SynthesisDeclined
from fitwell.speech.local import LocalSpeech

PREMIUM = "premium"
NEURAL = "neural"
GENERIC = "generic"
LOCAL = "local"


@dataclass(frozen=True)
class SpeechRequest:
    """Text to speak plus the caller's voice preferences."""

    text: str
    language: str | None = None
    voice: str | None = None
    provider: str | None = None


@dataclass(frozen=True)
class SpeechProvider:
    """One entry of the provider chain."""

    name: str
    applies: Callable[[SpeechRequest], bool]
    synthesize: Callable[[SpeechRequest], Awaitable[None]]


class SpeechSynthesizer:
    """Tries providers in order and falls through silently on failure.

    ``speak`` never raises; it returns the name of the provider that spoke,
    or ``None`` when every applicable provider declined.
    """

    def __init__(self, providers: Sequence[SpeechProvider], *, player: AudioPlayer, local: LocalSpeech | None = None) -> None:
        self._providers = list(providers)
        self._player = player
        self._local = local

    @property
    def provider_names(self) -> list[str]:
        return [provider.name for provider in self._providers]

    async def speak(
        self,
        text: str,
        *,
        language: str | None = None,
        voice: str | None = None,
        provider: str | None = None,
    ) -> str | None:
        if not text or not text.strip() or not self._providers:
            return None
        request = SpeechRequest(text=text, language=language, voice=voice, provider=provider)
        for candidate in self._providers:
            if not candidate.applies(request):
                continue
            try:
                await candidate.synthesize(request)
            except asyncio.CancelledError:
                raise
            except SynthesisDeclined as exc:
                logger.info("tts.provider.declined provider={} reason={}", candidate.name, exc.reason)
                continue
            except Exception as exc:
                logger.warning("tts.provider.declined provider={} error={!r}", candidate.name, exc)
                continue
            logger.debug("tts.provider.spoke provider={} chars={}", candidate.name, len(text))
            return candidate.name
        logger.warning("tts.chain.exhausted chars={}", len(text))
        return None

    async def stop(self) -> None:
        """Stop any playing sound and local speech. Safe with nothing playing."""
        try:
            await self._player.stop()
        except Exception:
            logger.opt(exception=True).warning("tts.stop.error target=player")
        if self._local is not None:
            await self._local.stop()


class HttpSpeechProviders:
    """Premium, neural and generic HTTP providers sharing one client and player."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient, player: AudioPlayer) -> None:
        self._settings = settings
        self._client = client
        self._player = player

    def premium(self) -> SpeechProvider:
        settings = self._settings

        def _applies(request: SpeechRequest) -> bool:
            return request.provider == PREMIUM or settings.premium_tts_configured

        return SpeechProvider(PREMIUM, _applies, self._speak_premium)

    def neural(self) -> SpeechProvider:
        settings = self._settings

        def _applies(request: SpeechRequest) -> bool:
            return request.provider == NEURAL or bool(settings.neural_tts_url)

        async def _synthesize(request: SpeechRequest) -> None:
            await self._speak_endpoint(
                NEURAL,
                settings.neural_tts_url,
                settings.neural_tts_api_key,
                request,
                audio_format=settings.neural_tts_format,
            )

        return SpeechProvider(NEURAL, _applies, _synthesize)

    def generic(self) -> SpeechProvider:
        settings = self._settings

        def _applies(request: SpeechRequest) -> bool:
            return request.provider == GENERIC or bool(settings.tts_url)

        async def _synthesize(request: SpeechRequest) -> None:
            await self._speak_endpoint(GENERIC, settings.tts_url, settings.tts_api_key, request)

        return SpeechProvider(GENERIC, _applies, _synthesize)

    async def _speak_premium(self, request: SpeechRequest) -> None:
        settings = self._settings
        voice = request.voice or settings.premium_tts_voice_id
        if not settings.premium_tts_api_key or not voice:
            raise SynthesisDeclined(PREMIUM, "api key or voice id not configured")

        url = f"{settings.premium_tts_base_url.rstrip('/')}/v1/text-to-speech/{voice}"
        response = await self._client.post(
            url,
            headers={"xi-api-key": settings.premium_tts_api_key},
            json={"text": request.text},
        )
        if not response.is_success:
            raise SynthesisDeclined(PREMIUM, f"status {response.status_code}: {response.text[:200]}")
        content_type = _content_type(response)
        if not content_type.startswith("audio/"):
            raise SynthesisDeclined(PREMIUM, f"unexpected content type {content_type or '-'}")
        await self._play_bytes(PREMIUM, response.content, _extension(content_type, "mp3"))

    async def _speak_endpoint(
        self,
        name: str,
        url: str | None,
        api_key: str | None,
        request: SpeechRequest,
        *,
        audio_format: str | None = None,
    ) -> None:
        if not url:
            raise SynthesisDeclined(name, "endpoint not configured")

        payload: dict[str, Any] = {"text": request.text}
        if request.voice:
            payload["voice"] = request.voice
        if request.language:
            payload["lang"] = request.language
        if audio_format:
            payload["format"] = audio_format
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}

        response = await self._client.post(url, json=payload, headers=headers)
        if not response.is_success:
            raise SynthesisDeclined(name, f"status {response.status_code}")

        content_type = _content_type(response)
        if content_type.startswith("audio/"):
            await self._play_bytes(name, response.content, _extension(content_type, "wav"))
            return
        if "application/json" in content_type:
            await self._play_json(name, response.json())
            return
        raise SynthesisDeclined(name, f"unexpected content type {content_type or '-'}")

    async def _play_json(self, name: str, body: object) -> None:
        if not isinstance(body, dict):
            raise SynthesisDeclined(name, "json body is not an object")
        if audio := body.get("audio"):
            try:
                data = base64.b64decode(str(audio), validate=True)
            except binascii.Error as exc:
                raise SynthesisDeclined(name, f"invalid base64 audio: {exc}") from exc
            await self._play_bytes(name, data, str(body.get("ext") or "wav"))
            return
        if url := body.get("url"):
            download = await self._client.get(str(url))
            download.raise_for_status()
            await self._play_bytes(name, download.content, str(body.get("ext") or "mp3"))
            return
        raise SynthesisDeclined(name, "json body has neither audio nor url")

    async def _play_bytes(self, name: str, data: bytes, extension: str) -> None:
        if not data:
            raise SynthesisDeclined(name, "empty audio")
        path = write_audio_bytes(data, f"fitwell_tts_{name}_", extension, self._settings.audio_cache_dir)
        try:
            await self._player.play(path)
        finally:
            discard(path)


def local_provider(local: LocalSpeech) -> SpeechProvider:
    async def _synthesize(request: SpeechRequest) -> None:
        await local.speak(request.text, language=request.language)

    return SpeechProvider(LOCAL, lambda _request: True, _synthesize)


def build_speech_synthesizer(
    settings: Settings,
    client: httpx.AsyncClient,
    player: AudioPlayer,
    *,
    local: LocalSpeech | None = None,
) -> SpeechSynthesizer:
    """Build the default chain: premium, neural, generic, then local."""

    local = local or LocalSpeech(settings.local_tts_command)
    http = HttpSpeechProviders(settings, client, player)
    providers = [http.premium(), http.neural(), http.generic(), local_provider(local)]
    return SpeechSynthesizer(providers, player=player, local=local)


def _content_type(response: httpx.Response) -> str:
    return response.headers.get("content-type", "").split(";", 1)[0].strip().casefold()


def _extension(content_type: str, default: str) -> str:
    _, _, subtype = content_type.partition("/")
    return subtype or default


