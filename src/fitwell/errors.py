"""Application-level exception types for Fitwell."""

from __future__ import annotations


class FitwellError(Exception):
    """Base exception for Fitwell."""


class ConfigurationError(FitwellError):
    """Raised when settings cannot be used to build a session."""


class CaptureError(FitwellError):
    """Raised when the microphone cannot start or finish a recording."""


class DialogueError(FitwellError):
    """Raised when the dialogue endpoint fails or returns an unusable body."""


class SynthesisDeclined(FitwellError):
    """Raised by a speech provider that could not render the text."""

    def __init__(self, provider: str, reason: str) -> None:
        super().__init__(f"{provider}: {reason}")
        self.provider = provider
        self.reason = reason
