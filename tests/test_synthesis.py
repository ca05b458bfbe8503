import base64
import json
from pathlib import Path

import httpx
import pytest
from conftest import make_settings, mock_client

from fitwell.errors import SynthesisDeclined
from fitwell.speech.synthesis import (
    GENERIC,
    LOCAL,
    NEURAL,
    PREMIUM,
    SpeechProvider,
    SpeechRequest,
    SpeechSynthesizer,
    build_speech_synthesizer,
)


class RecordingPlayer:
    def __init__(self) -> None:
        self.played: list[tuple[str, bytes]] = []
        self.paths: list[Path] = []
        self.stops = 0

    async def play(self, path: Path) -> None:
        self.paths.append(path)
        self.played.append((path.suffix, path.read_bytes()))

    async def stop(self) -> None:
        self.stops += 1


class RecordingLocal:
    def __init__(self) -> None:
        self.spoken: list[tuple[str, str | None]] = []
        self.stops = 0

    async def speak(self, text: str, *, language: str | None = None) -> None:
        self.spoken.append((text, language))

    async def stop(self) -> None:
        self.stops += 1


def _provider(name: str, calls: list[str], *, error: Exception | None = None, applies: bool = True) -> SpeechProvider:
    async def _synthesize(request: SpeechRequest) -> None:
        calls.append(name)
        if error is not None:
            raise error

    return SpeechProvider(name, lambda _request: applies, _synthesize)


@pytest.mark.asyncio
async def test_chain_falls_through_until_a_provider_succeeds() -> None:
    calls: list[str] = []
    synthesizer = SpeechSynthesizer(
        [
            _provider("a", calls, error=SynthesisDeclined("a", "no key")),
            _provider("b", calls, error=RuntimeError("crashed")),
            _provider("skipped", calls, applies=False),
            _provider("c", calls),
            _provider("d", calls),
        ],
        player=RecordingPlayer(),
    )

    assert await synthesizer.speak("hello") == "c"
    assert calls == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_blank_text_and_exhausted_chain_return_none() -> None:
    calls: list[str] = []
    synthesizer = SpeechSynthesizer(
        [_provider("a", calls, error=SynthesisDeclined("a", "down"))],
        player=RecordingPlayer(),
    )

    assert await synthesizer.speak("   ") is None
    assert calls == []
    assert await synthesizer.speak("hello") is None
    assert calls == ["a"]


@pytest.mark.asyncio
async def test_stop_reaches_player_and_local_speech() -> None:
    player = RecordingPlayer()
    local = RecordingLocal()
    synthesizer = SpeechSynthesizer([], player=player, local=local)  # type: ignore[arg-type]

    await synthesizer.stop()
    await synthesizer.stop()

    assert player.stops == 2
    assert local.stops == 2


@pytest.mark.asyncio
async def test_default_chain_order_and_local_fallback() -> None:
    player = RecordingPlayer()
    local = RecordingLocal()
    async with mock_client(lambda request: httpx.Response(500)) as client:
        synthesizer = build_speech_synthesizer(make_settings(), client, player, local=local)  # type: ignore[arg-type]

        assert synthesizer.provider_names == [PREMIUM, NEURAL, GENERIC, LOCAL]
        assert await synthesizer.speak("hello", language="en") == LOCAL

    assert local.spoken == [("hello", "en")]
    assert player.played == []


@pytest.mark.asyncio
async def test_generic_endpoint_plays_audio_response_and_discards_file(tmp_path: Path) -> None:
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"WAVDATA", headers={"content-type": "audio/wav"})

    player = RecordingPlayer()
    local = RecordingLocal()
    settings = make_settings(tts_url="http://tts.test/speak", tts_api_key="secret", audio_cache_dir=tmp_path)
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(settings, client, player, local=local)  # type: ignore[arg-type]
        assert await synthesizer.speak("hello", language="en", voice="alloy") == GENERIC

    assert player.played == [(".wav", b"WAVDATA")]
    assert not player.paths[0].exists()
    assert local.spoken == []
    assert requests[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(requests[0].content) == {"text": "hello", "voice": "alloy", "lang": "en"}


@pytest.mark.asyncio
async def test_generic_endpoint_plays_base64_json_audio() -> None:
    encoded = base64.b64encode(b"MP3DATA").decode()

    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"audio": encoded, "ext": "mp3"})

    player = RecordingPlayer()
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(
            make_settings(tts_url="http://tts.test/speak"), client, player, local=RecordingLocal()  # type: ignore[arg-type]
        )
        assert await synthesizer.speak("hello") == GENERIC

    assert player.played == [(".mp3", b"MP3DATA")]


@pytest.mark.asyncio
async def test_generic_endpoint_downloads_json_url() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        if request.method == "POST":
            return httpx.Response(200, json={"url": "http://cdn.test/clip.mp3"})
        assert str(request.url) == "http://cdn.test/clip.mp3"
        return httpx.Response(200, content=b"CLIP")

    player = RecordingPlayer()
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(
            make_settings(tts_url="http://tts.test/speak"), client, player, local=RecordingLocal()  # type: ignore[arg-type]
        )
        assert await synthesizer.speak("hello") == GENERIC

    assert player.played == [(".mp3", b"CLIP")]


@pytest.mark.asyncio
async def test_invalid_json_audio_falls_back_to_local() -> None:
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"audio": "%%% not base64 %%%"})

    local = RecordingLocal()
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(
            make_settings(tts_url="http://tts.test/speak"), client, RecordingPlayer(), local=local  # type: ignore[arg-type]
        )
        assert await synthesizer.speak("hello") == LOCAL

    assert local.spoken == [("hello", None)]


@pytest.mark.asyncio
async def test_neural_endpoint_requests_configured_format() -> None:
    payloads: list[dict] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        payloads.append(json.loads(request.content))
        return httpx.Response(200, content=b"NEURAL", headers={"content-type": "audio/wav"})

    player = RecordingPlayer()
    settings = make_settings(neural_tts_url="http://neural.test/tts", neural_tts_format="wav", tts_url="http://tts.test")
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(settings, client, player, local=RecordingLocal())  # type: ignore[arg-type]
        assert await synthesizer.speak("hello", language="ur") == NEURAL

    assert payloads == [{"text": "hello", "lang": "ur", "format": "wav"}]


@pytest.mark.asyncio
async def test_premium_provider_posts_to_voice_endpoint() -> None:
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, content=b"PREMIUM", headers={"content-type": "audio/mpeg"})

    player = RecordingPlayer()
    settings = make_settings(premium_tts_api_key="xi-key", premium_tts_voice_id="voice-1")
    async with mock_client(_handler) as client:
        synthesizer = build_speech_synthesizer(settings, client, player, local=RecordingLocal())  # type: ignore[arg-type]
        assert await synthesizer.speak("salaam", language="ur", provider=PREMIUM) == PREMIUM

    assert str(requests[0].url) == "https://api.elevenlabs.io/v1/text-to-speech/voice-1"
    assert requests[0].headers["xi-api-key"] == "xi-key"
    assert player.played == [(".mpeg", b"PREMIUM")]


@pytest.mark.asyncio
async def test_requested_premium_without_credentials_falls_through() -> None:
    local = RecordingLocal()
    async with mock_client(lambda request: httpx.Response(500)) as client:
        synthesizer = build_speech_synthesizer(make_settings(), client, RecordingPlayer(), local=local)  # type: ignore[arg-type]
        assert await synthesizer.speak("salaam", provider=PREMIUM) == LOCAL
