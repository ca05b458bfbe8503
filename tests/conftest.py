from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest

from fitwell.audio.capture import CaptureHandle
from fitwell.config import Settings
from fitwell.conversation import ConversationLog
from fitwell.errors import CaptureError
from fitwell.session import VoiceSession
from fitwell.types import DialogueResult, ServiceAction, Turn


def make_settings(**values: Any) -> Settings:
    values.setdefault("auto_listen", False)
    return Settings(_env_file=None, **values)  # type: ignore[call-arg]


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class FakeRecorder:
    def __init__(self, directory: Path, *, permission: bool = True) -> None:
        self.directory = directory
        self.permission = permission
        self.permission_requests = 0
        self.start_error: CaptureError | None = None
        self.produce_audio = True
        self.started: list[CaptureHandle] = []
        self.stopped: list[CaptureHandle] = []
        self.paths: list[Path] = []

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.permission

    async def start(self) -> CaptureHandle:
        if self.start_error is not None:
            raise self.start_error
        handle = CaptureHandle(sample_rate=16000)
        self.started.append(handle)
        return handle

    async def stop(self, handle: CaptureHandle) -> Path | None:
        self.stopped.append(handle)
        if not self.produce_audio:
            return None
        path = self.directory / f"{handle.id}.wav"
        path.write_bytes(b"RIFF0000WAVE")
        self.paths.append(path)
        return path


class FakeTranscriber:
    def __init__(self, *transcripts: str) -> None:
        self.transcripts = list(transcripts)
        self.calls: list[tuple[Path | None, str | None]] = []

    async def transcribe(self, path: Path | None, *, language: str | None = None) -> str:
        self.calls.append((path, language))
        return self.transcripts.pop(0) if self.transcripts else ""


class FakeDialogue:
    def __init__(self, *results: DialogueResult | Exception) -> None:
        self.results = list(results)
        self.calls: list[tuple[str, list[Turn]]] = []

    async def respond(self, text: str, history: Any = ()) -> DialogueResult:
        self.calls.append((text, list(history)))
        if not self.results:
            return DialogueResult(reply=f"echo: {text}")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


class FakeSynthesizer:
    def __init__(self) -> None:
        self.spoken: list[tuple[str, str | None, str | None]] = []
        self.stops = 0

    async def speak(
        self,
        text: str,
        *,
        language: str | None = None,
        voice: str | None = None,
        provider: str | None = None,
    ) -> str | None:
        self.spoken.append((text, language, provider))
        return "fake"

    async def stop(self) -> None:
        self.stops += 1

    @property
    def texts(self) -> list[str]:
        return [text for text, _language, _provider in self.spoken]


class FakeActions:
    def __init__(self, result: dict[str, Any] | Exception | None = None) -> None:
        self.result = result if result is not None else {"success": True, "bookingId": "mock-1"}
        self.executed: list[ServiceAction] = []

    async def execute(self, action: ServiceAction) -> dict[str, Any]:
        self.executed.append(action)
        if isinstance(self.result, Exception):
            raise self.result
        return dict(self.result)


class SessionKit:
    """A session plus the fakes it was built from."""

    def __init__(self, tmp_path: Path, settings: Settings, dialogue: FakeDialogue, transcripts: tuple[str, ...]) -> None:
        self.settings = settings
        self.recorder = FakeRecorder(tmp_path)
        self.transcriber = FakeTranscriber(*transcripts)
        self.dialogue = dialogue
        self.synthesizer = FakeSynthesizer()
        self.actions = FakeActions()
        self.log = ConversationLog()
        self.session = VoiceSession(
            settings,
            recorder=self.recorder,
            transcriber=self.transcriber,  # type: ignore[arg-type]
            dialogue=self.dialogue,  # type: ignore[arg-type]
            synthesizer=self.synthesizer,  # type: ignore[arg-type]
            actions=self.actions,  # type: ignore[arg-type]
            log=self.log,
            session_id="test",
        )

    def texts(self) -> list[str]:
        return [turn.text for turn in self.log]


@pytest.fixture
def make_kit(tmp_path: Path) -> Callable[..., SessionKit]:
    def _make(
        *results: DialogueResult | Exception,
        transcripts: tuple[str, ...] = (),
        **settings: Any,
    ) -> SessionKit:
        return SessionKit(tmp_path, make_settings(**settings), FakeDialogue(*results), transcripts)

    return _make


BOOK_DOCTOR = ServiceAction(type="book_doctor", params={"specialty": "general"})


def service_result(reply: str = "A GP visit could help. Shall I book one?") -> DialogueResult:
    return DialogueResult.model_validate(
        {
            "reply": reply,
            "mode": "service",
            "suggestedServices": [
                {
                    "id": "s_1",
                    "type": "doctor",
                    "title": "Book a doctor",
                    "actionTemplate": {"type": "book_doctor", "params": {"specialty": "general"}},
                }
            ],
            "awaitingConfirmation": True,
            "action": {"type": "book_doctor", "params": {"specialty": "general"}},
        }
    )


