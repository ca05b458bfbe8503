"""Fitwell - a voice healthcare assistant session."""

from .bootstrap import build_session
from .config import Settings, get_settings
from .session import SessionPhase, SessionState, VoiceSession

__version__ = "0.1.0"

__all__ = ["SessionPhase", "SessionState", "Settings", "VoiceSession", "build_session", "get_settings"]
