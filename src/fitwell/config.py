"""Configuration management for Fitwell."""

from __future__ import annotations

from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from fitwell.errors import ConfigurationError

RuntimeKind = Literal["native", "hosted"]


class Settings(BaseSettings):
    """Session settings, read once when a session starts."""

    model_config = SettingsConfigDict(
        env_prefix="FITWELL_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Session
    language: str = Field(default="en", description="Default language code")
    auto_listen: bool = Field(default=True, description="Reopen the microphone after speaking")
    runtime: RuntimeKind = Field(default="native", description="native or hosted (browser-backed recognition)")
    capture_timeout_seconds: float = Field(default=12.0, description="Safety limit for one recording")
    capture_sample_rate: int = Field(default=16000, description="Microphone sample rate in Hz")

    # Transcription
    asr_url: Optional[str] = Field(None, description="Transcription endpoint")
    asr_api_key: Optional[str] = Field(None, description="Bearer token for the transcription endpoint")

    # Dialogue
    dialogue_url: Optional[str] = Field(None, description="Dialogue model endpoint")
    dialogue_api_key: Optional[str] = Field(None, description="Bearer token for the dialogue endpoint")
    system_prompt: Optional[str] = Field(None, description="Override for the built-in system prompt")

    # Speech synthesis
    premium_tts_base_url: str = Field(default="https://api.elevenlabs.io", description="Premium voice API base")
    premium_tts_api_key: Optional[str] = Field(None, description="Premium voice API key")
    premium_tts_voice_id: Optional[str] = Field(None, description="Premium voice identifier")
    premium_voice_languages: list[str] = Field(
        default_factory=lambda: ["ur", "ar", "fa", "he"],
        description="Languages that request the premium voice when it is configured",
    )
    neural_tts_url: Optional[str] = Field(None, description="Self-hosted neural synthesis endpoint")
    neural_tts_api_key: Optional[str] = Field(None, description="Bearer token for the neural endpoint")
    neural_tts_format: str = Field(default="wav", description="Audio format requested from the neural endpoint")
    tts_url: Optional[str] = Field(None, description="Generic synthesis endpoint")
    tts_api_key: Optional[str] = Field(None, description="Bearer token for the generic endpoint")
    local_tts_command: Optional[str] = Field(None, description="Executable used for local synthesis")
    audio_cache_dir: Optional[Path] = Field(None, description="Directory for synthesized audio files")

    # Actions
    actions_base_url: Optional[str] = Field(None, description="Booking and ordering backend base URL")
    actions_api_key: Optional[str] = Field(None, description="Bearer token for the booking backend")
    mock_action_delay_seconds: float = Field(default=0.7, description="Simulated latency of mock actions")

    # Transport
    http_timeout_seconds: Optional[float] = Field(None, description="HTTP timeout; httpx default when unset")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    @property
    def premium_tts_configured(self) -> bool:
        return bool(self.premium_tts_api_key and self.premium_tts_voice_id)

    def prefers_premium_voice(self, language: str) -> bool:
        code = language.split("-", 1)[0].casefold()
        return self.premium_tts_configured and code in {lang.casefold() for lang in self.premium_voice_languages}


def get_settings(**overrides: object) -> Settings:
    """Get application settings.

    Args:
        overrides: Explicit values that win over the environment and ``.env``

    Returns:
        Settings instance
    """
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        settings = Settings(**values)  # type: ignore[arg-type]
    except ValidationError as exc:
        raise ConfigurationError(f"invalid settings: {exc}") from exc
    if settings.capture_timeout_seconds <= 0:
        raise ConfigurationError("capture_timeout_seconds must be positive")
    return settings
