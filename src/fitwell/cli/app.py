"""Fitwell command line."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from fitwell.bootstrap import build_http_client, build_session, build_synthesizer
from fitwell.cli.interactive import InteractiveCli
from fitwell.cli.render import Renderer
from fitwell.config import Settings, get_settings
from fitwell.errors import ConfigurationError
from fitwell.logging_utils import configure_logging
from fitwell.speech.transcription import TranscriptionService

app = typer.Typer(name="fitwell", help="Voice healthcare assistant.", add_completion=False)


def _load_settings(renderer: Renderer, **overrides: object) -> Settings:
    try:
        return get_settings(**overrides)
    except ConfigurationError as exc:
        renderer.error(str(exc))
        raise typer.Exit(1) from exc


@app.command()
def chat(
    voice: Annotated[bool, typer.Option("--voice/--no-voice", help="Use the microphone and speakers")] = True,
    language: Annotated[str | None, typer.Option("--language", "-l", help="Conversation language code")] = None,
    auto_listen: Annotated[
        bool | None, typer.Option("--auto-listen/--no-auto-listen", help="Reopen the microphone after replies")
    ] = None,
) -> None:
    """Start an interactive session."""

    renderer = Renderer()
    if not voice:
        auto_listen = False
    settings = _load_settings(renderer, language=language, auto_listen=auto_listen)
    configure_logging(profile="chat", level=settings.log_level)
    session = build_session(settings, voice=voice)
    cli = InteractiveCli(session, renderer, voice=voice)
    asyncio.run(cli.run())


@app.command()
def say(
    text: Annotated[str, typer.Argument(help="Text to speak")],
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
    voice_id: Annotated[str | None, typer.Option("--voice-id", help="Provider voice identifier")] = None,
    provider: Annotated[str | None, typer.Option("--provider", help="Request a specific provider first")] = None,
) -> None:
    """Speak TEXT through the synthesis chain."""

    renderer = Renderer()
    settings = _load_settings(renderer, language=language)
    configure_logging(level=settings.log_level)

    async def _run() -> str | None:
        async with build_http_client(settings) as client:
            synthesizer = build_synthesizer(settings, client)
            return await synthesizer.speak(
                text, language=settings.language, voice=voice_id, provider=provider
            )

    spoken_by = asyncio.run(_run())
    if spoken_by is None:
        renderer.error("no speech provider could speak the text")
        raise typer.Exit(1)
    renderer.info(f"[dim]spoken by {spoken_by}[/dim]")


@app.command()
def transcribe(
    path: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Audio file to transcribe")],
    language: Annotated[str | None, typer.Option("--language", "-l")] = None,
) -> None:
    """Transcribe an audio FILE with the configured recognizer."""

    renderer = Renderer()
    settings = _load_settings(renderer, language=language)
    configure_logging(level=settings.log_level)

    async def _run() -> str:
        async with build_http_client(settings) as client:
            return await TranscriptionService(settings, client).transcribe(path, language=settings.language)

    typer.echo(asyncio.run(_run()))
