"""Session bootstrap helpers."""

from __future__ import annotations

import httpx

from fitwell.actions import ActionExecutor
from fitwell.audio.capture import DisabledRecorder, Recorder, SoundDeviceRecorder
from fitwell.audio.playback import AudioPlayer, SilentPlayer, SoundDevicePlayer
from fitwell.config import Settings
from fitwell.conversation import ConversationLog
from fitwell.dialogue import DialogueClient
from fitwell.session import VoiceSession
from fitwell.speech.local import LocalSpeech
from fitwell.speech.synthesis import SpeechSynthesizer, build_speech_synthesizer
from fitwell.speech.transcription import Recognizer, TranscriptionService


def build_http_client(settings: Settings) -> httpx.AsyncClient:
    """Shared client for every endpoint; httpx's default timeout unless configured."""

    if settings.http_timeout_seconds is None:
        return httpx.AsyncClient(follow_redirects=True)
    return httpx.AsyncClient(follow_redirects=True, timeout=httpx.Timeout(settings.http_timeout_seconds))


def build_synthesizer(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    player: AudioPlayer | None = None,
    local: LocalSpeech | None = None,
) -> SpeechSynthesizer:
    return build_speech_synthesizer(settings, client, player or SoundDevicePlayer(), local=local)


def build_session(
    settings: Settings,
    *,
    client: httpx.AsyncClient | None = None,
    recorder: Recorder | None = None,
    player: AudioPlayer | None = None,
    local: LocalSpeech | None = None,
    recognizer: Recognizer | None = None,
    log: ConversationLog | None = None,
    voice: bool = True,
) -> VoiceSession:
    """Build one voice session wired to the configured endpoints.

    With ``voice=False`` the session is text-only: the microphone is never
    opened and replies are not spoken. A client created here is owned by the
    session and closed with it.
    """

    owned_client = client is None
    http = client or build_http_client(settings)
    if voice:
        recorder = recorder or SoundDeviceRecorder(
            sample_rate=settings.capture_sample_rate, directory=settings.audio_cache_dir
        )
        synthesizer = build_synthesizer(settings, http, player=player, local=local)
    else:
        recorder = DisabledRecorder()
        synthesizer = SpeechSynthesizer([], player=SilentPlayer())
    return VoiceSession(
        settings,
        recorder=recorder,
        transcriber=TranscriptionService(settings, http, recognizer=recognizer),
        dialogue=DialogueClient(settings, http),
        synthesizer=synthesizer,
        actions=ActionExecutor(settings, http),
        log=log,
        client=http if owned_client else None,
    )
