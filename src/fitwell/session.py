"""Voice session state machine.

One ``VoiceSession`` owns the conversation log and the mutable session state
and sequences capture, transcription, confirmation, dialogue, synthesis and
action execution on a single event loop. Every step runs to completion before
the next starts; the only concurrent actor is the capture watchdog, which is
neutralized by comparing capture handles by identity.
"""

from __future__ import annotations

import asyncio
import functools
import uuid
from collections.abc import Awaitable, Callable, Sequence
from contextvars import ContextVar
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Any, TypeVar

import httpx
from loguru import logger

from fitwell.actions import ActionExecutor
from fitwell.audio.capture import CaptureHandle, Recorder
from fitwell.audio.files import discard
from fitwell.config import Settings
from fitwell.confirmation import Confirmation, classify
from fitwell.conversation import ConversationLog
from fitwell.dialogue import DialogueClient
from fitwell.errors import CaptureError, DialogueError
from fitwell.speech.synthesis import PREMIUM, SpeechSynthesizer
from fitwell.speech.transcription import TranscriptionService
from fitwell.types import ServiceAction, SuggestedService, Turn, make_id

PERMISSION_TEXT = "I need permission to access the microphone."
CAPTURE_FAILED_TEXT = "I couldn't capture the audio."
DECLINED_TEXT = "Okay, I will not proceed with that."
APOLOGY_TEXT = "Sorry, I couldn't process that right now."
NO_TEMPLATE_TEXT = "No action template available for that service."
BOOKING_TEXT = "Okay, I am booking that for you now..."
BOOKING_ERROR_TEXT = "There was an error completing the request."

_session_context: ContextVar[VoiceSession | None] = ContextVar("fitwell_session", default=None)

R = TypeVar("R")


def current_session() -> str:
    """Get the id of the session handling the current task."""
    session = _session_context.get()
    return session.id if session is not None else "-"


def current_phase() -> str:
    session = _session_context.get()
    return str(session.state.phase) if session is not None else "-"


def _in_session_context(
    method: Callable[..., Awaitable[R]],
) -> Callable[..., Awaitable[R]]:
    @functools.wraps(method)
    async def wrapper(self: VoiceSession, *args: Any, **kwargs: Any) -> R:
        token = _session_context.set(self)
        try:
            return await method(self, *args, **kwargs)
        finally:
            _session_context.reset(token)

    return wrapper


class SessionPhase(StrEnum):
    IDLE = "idle"
    LISTENING = "listening"
    TRANSCRIBING = "transcribing"
    CONFIRMING = "confirming"
    DISPATCHING = "dispatching"
    SPEAKING = "speaking"
    EXECUTING_ACTION = "executing_action"


@dataclass
class SessionState:
    """Mutable session flags.

    ``awaiting_confirmation`` is derived from ``pending_action`` so the two
    are always set and cleared together.
    """

    language: str
    auto_listen: bool
    recording_active: bool = False
    processing_active: bool = False
    phase: SessionPhase = SessionPhase.IDLE
    pending_action: ServiceAction | None = None

    @property
    def awaiting_confirmation(self) -> bool:
        return self.pending_action is not None

    def request_confirmation(self, action: ServiceAction) -> None:
        self.pending_action = action

    def clear_confirmation(self) -> None:
        self.pending_action = None


class VoiceSession:
    """Turn orchestration for one conversation, from greeting to ``close``."""

    def __init__(
        self,
        settings: Settings,
        *,
        recorder: Recorder,
        transcriber: TranscriptionService,
        dialogue: DialogueClient,
        synthesizer: SpeechSynthesizer,
        actions: ActionExecutor,
        log: ConversationLog | None = None,
        client: httpx.AsyncClient | None = None,
        session_id: str | None = None,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex[:8]
        self.state = SessionState(language=settings.language, auto_listen=settings.auto_listen)
        self.log = log if log is not None else ConversationLog()
        self._settings = settings
        self._recorder = recorder
        self._transcriber = transcriber
        self._dialogue = dialogue
        self._synthesizer = synthesizer
        self._actions = actions
        self._client = client
        self._capture: CaptureHandle | None = None
        self._starting = False
        self._permission_granted = False
        self._watchdogs: set[asyncio.Task[None]] = set()
        self._closed = False

    async def __aenter__(self) -> VoiceSession:
        return self

    async def __aexit__(self, *_exc_info: object) -> None:
        await self.close()

    @property
    def listening(self) -> bool:
        return self._capture is not None

    @property
    def closed(self) -> bool:
        return self._closed

    # -- capture --------------------------------------------------------------

    @_in_session_context
    async def start_listening(self) -> bool:
        """Open the microphone. Returns False when no capture was started."""
        if self._closed or self._capture is not None or self._starting:
            return False
        self._starting = True
        try:
            # Speaking is interrupted so the user can barge in.
            await self._synthesizer.stop()
            if not await self._ensure_permission():
                self._say(PERMISSION_TEXT)
                return False
            if self._closed:
                return False
            try:
                handle = await self._recorder.start()
            except CaptureError as exc:
                logger.error("session.listen.error error={}", exc)
                self.state.recording_active = False
                self.state.phase = SessionPhase.IDLE
                return False

            # close() may have run while the device was opening.
            if self._closed:
                logger.info("session.listen.abandoned handle={}", handle.id)
                discard(await self._finalize(handle))
                return False

            self._capture = handle
            self.state.recording_active = True
            self.state.phase = SessionPhase.LISTENING
            self._arm_watchdog(handle)
            logger.info("session.listen.start handle={}", handle.id)
            return True
        finally:
            self._starting = False

    @_in_session_context
    async def stop_listening(self) -> None:
        """Finish the active capture and run the turn it carries."""
        handle = self._capture
        if handle is None:
            self.state.recording_active = False
            return

        # Detach first so a watchdog firing during the awaits below sees no capture.
        self._capture = None
        self.state.recording_active = False
        self.state.phase = SessionPhase.TRANSCRIBING
        self.state.processing_active = True
        path: Path | None = None
        transcript = ""
        try:
            path = await self._finalize(handle)
            if path is not None:
                transcript = await self._transcriber.transcribe(path, language=self.state.language)
        finally:
            self.state.processing_active = False
            discard(path)

        logger.info("session.listen.stop handle={} chars={}", handle.id, len(transcript))
        if not transcript.strip():
            self.state.phase = SessionPhase.IDLE
            self._say(CAPTURE_FAILED_TEXT)
            return

        history = self.log.turns()
        self.log.append(Turn(role="user", text=transcript, id=make_id("u_")))
        await self._route(transcript, history)

    # -- typed input ------------------------------------------------------------

    @_in_session_context
    async def send_text(self, text: str) -> None:
        if not text or not text.strip():
            return
        trimmed = text.strip()
        history = self.log.turns()
        self.log.append(Turn(role="user", text=trimmed, id=make_id("u_")))
        await self._route(trimmed, history)

    # -- services -------------------------------------------------------------

    @_in_session_context
    async def execute_suggested_service(self, service: SuggestedService) -> None:
        if service.action_template is None:
            self._say(NO_TEMPLATE_TEXT)
            return
        self.state.request_confirmation(service.action_template)
        question = f"Do you want me to {service.title.lower()}?"
        self._say(question)
        await self.speak(question)

    @_in_session_context
    async def execute_pending_action(self, action: ServiceAction | None = None) -> None:
        action = action or self.state.pending_action
        # Cleared before any await so a repeated "yes" cannot run the action twice.
        self.state.clear_confirmation()
        if action is None:
            return

        self.state.phase = SessionPhase.EXECUTING_ACTION
        self.state.processing_active = True
        self._say(BOOKING_TEXT)
        try:
            result = await self._actions.execute(action)
        except Exception as exc:
            # Backends fail in non-uniform ways; report them like an explicit failure.
            logger.opt(exception=True).error("session.action.error type={}", action.type)
            result = {"success": False, "error": str(exc) or BOOKING_ERROR_TEXT}
        finally:
            self.state.processing_active = False

        if result.get("success") is not False:
            reference = result.get("bookingId") or result.get("orderId") or result.get("order_id") or "N/A"
            text = f"All set! Your booking/order is confirmed. Reference: {reference}."
        else:
            text = f"I couldn't complete the booking: {result.get('error') or 'unknown error'}"
        logger.info("session.action.done type={} success={}", action.type, result.get("success"))
        self._say(text)
        await self.speak(text)

    # -- speech ---------------------------------------------------------------

    @_in_session_context
    async def speak(self, text: str) -> None:
        """Speak ``text`` then, with auto-listen on, reopen the microphone."""
        self.state.phase = SessionPhase.SPEAKING
        self.state.processing_active = True
        provider = PREMIUM if self._settings.prefers_premium_voice(self.state.language) else None
        try:
            await self._synthesizer.speak(text, language=self.state.language, provider=provider)
        finally:
            self.state.processing_active = False
            self.state.phase = SessionPhase.IDLE
        if self.state.auto_listen and not self._closed:
            await self.start_listening()

    # -- settings ---------------------------------------------------------------

    def toggle_auto_listen(self) -> bool:
        self.state.auto_listen = not self.state.auto_listen
        logger.info("session.auto_listen enabled={}", self.state.auto_listen)
        return self.state.auto_listen

    def set_language(self, language: str) -> None:
        self.state.language = language

    # -- teardown -------------------------------------------------------------

    @_in_session_context
    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        current = asyncio.current_task()
        for task in list(self._watchdogs):
            if task is not current:
                task.cancel()
        await self._synthesizer.stop()

        handle = self._capture
        self._capture = None
        self.state.recording_active = False
        if handle is not None:
            discard(await self._finalize(handle))
        self.state.phase = SessionPhase.IDLE
        if self._client is not None:
            await self._client.aclose()
        logger.info("session.closed turns={}", len(self.log))

    # -- internals ------------------------------------------------------------

    async def _route(self, text: str, history: Sequence[Turn]) -> None:
        if self.state.awaiting_confirmation:
            self.state.phase = SessionPhase.CONFIRMING
            verdict = classify(text)
            logger.info("session.confirmation verdict={}", verdict)
            if verdict is Confirmation.POSITIVE:
                await self.execute_pending_action(self.state.pending_action)
                return
            if verdict is Confirmation.NEGATIVE:
                self.state.clear_confirmation()
                self._say(DECLINED_TEXT)
                await self.speak(DECLINED_TEXT)
                return
        await self._dispatch(text, history)

    async def _dispatch(self, text: str, history: Sequence[Turn]) -> None:
        self.state.phase = SessionPhase.DISPATCHING
        self.state.processing_active = True
        try:
            result = await self._dialogue.respond(text, history)
        except DialogueError as exc:
            logger.error("session.dialogue.error error={}", exc)
            self.state.phase = SessionPhase.IDLE
            self._say(APOLOGY_TEXT)
            return
        finally:
            self.state.processing_active = False

        self.log.append(
            Turn(
                role="assistant",
                text=result.reply,
                id=make_id("a_"),
                suggested_services=tuple(result.suggested_services),
            )
        )
        if result.requests_confirmation and result.action is not None:
            self.state.request_confirmation(result.action)
        else:
            self.state.clear_confirmation()
        await self.speak(result.reply)

    async def _ensure_permission(self) -> bool:
        if self._permission_granted:
            return True
        try:
            granted = await self._recorder.request_permission()
        except CaptureError:
            logger.opt(exception=True).warning("session.permission.error")
            granted = False
        self._permission_granted = granted
        return granted

    async def _finalize(self, handle: CaptureHandle) -> Path | None:
        try:
            return await self._recorder.stop(handle)
        except CaptureError:
            logger.opt(exception=True).warning("session.capture.finalize_error handle={}", handle.id)
            return None

    def _arm_watchdog(self, handle: CaptureHandle) -> None:
        task = asyncio.create_task(self._capture_watchdog(handle), name=f"fitwell-capture-watchdog-{handle.id}")
        self._watchdogs.add(task)
        task.add_done_callback(self._watchdogs.discard)

    async def _capture_watchdog(self, handle: CaptureHandle) -> None:
        await asyncio.sleep(self._settings.capture_timeout_seconds)
        if self._capture is not handle:
            logger.debug("session.watchdog.stale handle={}", handle.id)
            return
        logger.info("session.watchdog.fired handle={} seconds={}", handle.id, self._settings.capture_timeout_seconds)
        try:
            await self.stop_listening()
        except Exception:
            logger.exception("session.watchdog.error handle={}", handle.id)

    def _say(self, text: str) -> Turn:
        return self.log.append(Turn(role="assistant", text=text, id=make_id("m_")))
