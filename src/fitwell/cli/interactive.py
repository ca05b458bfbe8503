"""Interactive chat loop."""

from __future__ import annotations

import asyncio

from loguru import logger

from fitwell.cli.render import Renderer
from fitwell.session import VoiceSession

COMMANDS = ("/listen", "/stop", "/auto", "/pick", "/quit")


class InteractiveCli:
    """Reads lines from the terminal and drives one ``VoiceSession``.

    Lines starting with ``/`` are commands; anything else is sent as typed
    input. The prompt runs in a worker thread so the capture watchdog keeps
    running while the user types.
    """

    def __init__(self, session: VoiceSession, renderer: Renderer | None = None, *, voice: bool = True) -> None:
        self._session = session
        self._renderer = renderer or Renderer()
        self._voice = voice

    async def run(self) -> None:
        unsubscribe = self._session.log.subscribe(self._renderer.turn)
        for turn in self._session.log:
            self._renderer.turn(turn)
        self._renderer.welcome(
            voice=self._voice,
            language=self._session.state.language,
            auto_listen=self._session.state.auto_listen,
        )
        try:
            async with self._session:
                if self._voice and self._session.state.auto_listen:
                    await self._session.start_listening()
                while True:
                    try:
                        line = await asyncio.to_thread(self._renderer.get_user_input)
                    except (EOFError, KeyboardInterrupt):
                        break
                    if not await self.handle_line(line):
                        break
        finally:
            unsubscribe()

    async def handle_line(self, line: str) -> bool:
        """Handle one input line. Returns False when the loop should end."""
        text = line.strip()
        if not text:
            return True
        if not text.startswith("/"):
            await self._session.send_text(text)
            return True

        command, _, argument = text.partition(" ")
        command = command.casefold()
        if command in {"/quit", "/exit"}:
            return False
        if command == "/listen":
            if self._session.listening:
                self._renderer.info("[dim]already listening[/dim]")
            elif await self._session.start_listening():
                self._renderer.info("[dim]listening... type /stop when done[/dim]")
        elif command == "/stop":
            if not self._session.listening:
                self._renderer.info("[dim]not listening[/dim]")
            await self._session.stop_listening()
        elif command == "/auto":
            enabled = self._session.toggle_auto_listen()
            self._renderer.info(f"[dim]auto-listen {'on' if enabled else 'off'}[/dim]")
        elif command == "/pick":
            await self._pick(argument.strip())
        else:
            self._renderer.error(f"unknown command {command}; available: {' '.join(COMMANDS)}")
        return True

    async def _pick(self, argument: str) -> None:
        services = self._session.log.last_suggestions()
        if not services:
            self._renderer.error("no suggested services to pick from")
            return
        try:
            index = int(argument)
        except ValueError:
            self._renderer.error("usage: /pick N")
            return
        if not 1 <= index <= len(services):
            self._renderer.error(f"pick a number between 1 and {len(services)}")
            return
        service = services[index - 1]
        logger.info("cli.pick service={} title={}", service.id, service.title)
        await self._session.execute_suggested_service(service)
