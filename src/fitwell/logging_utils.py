"""Loguru setup for sessions and CLI commands.

Every record carries the id and turn phase of the session whose method is
running, read from the session context variable; outside a session both are
``-``.
"""

from __future__ import annotations

import sys
from typing import Literal

import loguru
from loguru import logger
from rich import get_console
from rich.logging import RichHandler

LogProfile = Literal["default", "chat"]

CHAT_FORMAT = "[{extra[session]}:{extra[phase]}] {message}"
DEFAULT_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level:<7} | {extra[session]} {extra[phase]:<16} | "
    "{name}:{function}:{line} | {message}"
)

_active_profile: LogProfile | None = None


def bind_session_context(record: loguru.Record) -> None:
    from fitwell.session import current_phase, current_session

    record["extra"].setdefault("session", current_session())
    record["extra"].setdefault("phase", current_phase())


def configure_logging(*, profile: LogProfile = "default", level: str = "INFO") -> None:
    """Route records to stderr, or through rich while a chat prompt owns the terminal.

    Reconfiguring with the active profile is a no-op.
    """
    global _active_profile
    if profile == _active_profile:
        return

    logger.remove()
    logger.configure(patcher=bind_session_context)
    if profile == "chat":
        # Records share the rich console with the prompt.
        sink = RichHandler(console=get_console(), show_time=False, show_path=False, markup=False)
        logger.add(sink, level=level.upper(), format=CHAT_FORMAT, backtrace=False, diagnose=False)
    else:
        logger.add(sys.stderr, level=level.upper(), format=DEFAULT_FORMAT, backtrace=False, diagnose=False)
    _active_profile = profile
