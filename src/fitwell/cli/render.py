"""CLI renderer for Fitwell."""

import threading

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.markup import escape

from fitwell.types import Turn


class Renderer:
    """CLI renderer using Rich for terminal output."""

    def __init__(self, console: Console | None = None) -> None:
        self.console: Console = console or Console()
        self._prompt_session: PromptSession[str] | None = None
        self._print_lock = threading.Lock()

    def info(self, message: str) -> None:
        self._print(message)

    def error(self, message: str) -> None:
        self._print(f"[bold red]Error:[/bold red] {escape(message)}")

    def welcome(self, *, voice: bool, language: str, auto_listen: bool) -> None:
        self._print("[bold green]Fitwell[/bold green] - voice healthcare assistant")
        mode = "voice" if voice else "text only"
        self._print(f"[dim]mode={mode} language={language} auto-listen={'on' if auto_listen else 'off'}[/dim]")
        self._print("[dim]Commands: /listen /stop /auto /pick N /quit[/dim]")

    def turn(self, turn: Turn) -> None:
        """Render one conversation turn, with numbered suggestions when offered."""
        if turn.role == "user":
            self._print(f"[bold cyan]You:[/bold cyan] {escape(turn.text)}")
        else:
            self._print(f"[bold yellow]Fitwell:[/bold yellow] {escape(turn.text)}")
        for index, service in enumerate(turn.suggested_services, start=1):
            line = f"  [magenta]{index}.[/magenta] {escape(service.title)}"
            if service.description:
                line += f" [dim]- {escape(service.description)}[/dim]"
            self._print(line)

    def get_user_input(self) -> str:
        """Prompt user for input."""
        if self._prompt_session is None:
            self._prompt_session = PromptSession()
        with patch_stdout(raw=True):
            return self._prompt_session.prompt("> ")

    def _print(self, message: str) -> None:
        with self._print_lock:
            self.console.print(message)
