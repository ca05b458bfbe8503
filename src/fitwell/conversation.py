"""Append-only conversation log."""

from __future__ import annotations

from collections.abc import Callable, Iterator

from loguru import logger

from fitwell.types import SuggestedService, Turn

GREETING = "Hi, I'm Fitwell, your voice healthcare assistant. Tell me how you're feeling or ask a health question."

TurnListener = Callable[[Turn], None]


class ConversationLog:
    """Ordered turns of one session. Turns are never edited or removed."""

    def __init__(self, greeting: str | None = GREETING) -> None:
        self._turns: list[Turn] = []
        self._listeners: list[TurnListener] = []
        if greeting:
            self._turns.append(Turn(role="assistant", text=greeting))

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def turns(self) -> list[Turn]:
        return list(self._turns)

    def last(self) -> Turn | None:
        return self._turns[-1] if self._turns else None

    def last_suggestions(self) -> list[SuggestedService]:
        """Suggested services from the most recent assistant turn that offered any."""
        for turn in reversed(self._turns):
            if turn.suggested_services:
                return list(turn.suggested_services)
        return []

    def subscribe(self, listener: TurnListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def append(self, turn: Turn) -> Turn:
        self._turns.append(turn)
        for listener in list(self._listeners):
            try:
                listener(turn)
            except Exception:
                # Listeners are rendering sinks; the log stays authoritative.
                logger.opt(exception=True).warning("conversation.listener.error turn={}", turn.id)
        return turn
