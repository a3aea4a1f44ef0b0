"""Configuration management for hearforyou."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="HEARFORYOU_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Runtime
    home: Path | None = Field(default=None, description="State directory, defaults to ~/.hearforyou")
    session_store: Literal["memory", "json"] = Field(default="json", description="Session store backend")
    max_unwind_depth: int = Field(default=32, ge=1, description="Maximum step evaluations per turn")
    poll_interval_seconds: float = Field(default=1.0, gt=0, description="Delay between job status polls")
    job_timeout_seconds: float = Field(default=120.0, gt=0, description="Age after which a pending job fails")
    request_timeout_seconds: float = Field(default=20.0, gt=0, description="HTTP timeout for external services")

    # Intent classification
    intent_thresholds: dict[str, float] = Field(
        default_factory=dict,
        description="Per-intent confidence threshold overrides, keyed by intent label",
    )
    luis_app_id: str | None = Field(default=None, description="LUIS application id")
    luis_api_key: str | None = Field(default=None, description="LUIS prediction key")
    luis_endpoint: str | None = Field(default=None, description="LUIS prediction endpoint")

    # Computer Vision (OCR)
    vision_key: str | None = Field(default=None, description="Computer Vision subscription key")
    vision_endpoint: str | None = Field(default=None, description="Computer Vision endpoint")

    # Translator
    translator_key: str | None = Field(default=None, description="Translator subscription key")
    translator_endpoint: str = Field(
        default="https://api.cognitive.microsofttranslator.com",
        description="Translator endpoint",
    )
    translator_region: str | None = Field(default=None, description="Translator resource region")

    # Speech
    speech_key: str | None = Field(default=None, description="Speech service subscription key")
    speech_region: str | None = Field(default=None, description="Speech service region")
    speech_language: str = Field(default="it-IT", description="Recognition and synthesis language")
    speech_voice: str = Field(default="it-IT-ElsaNeural", description="Text-to-speech voice name")

    # Logging
    log_level: str = Field(default="INFO", description="Log level")

    def resolve_home(self) -> Path:
        home = self.home or Path.home() / ".hearforyou"
        return home.expanduser().resolve()

    @property
    def luis_configured(self) -> bool:
        return bool(self.luis_app_id and self.luis_api_key and self.luis_endpoint)


def load_settings(**overrides: object) -> Settings:
    """Load settings from environment and `.env`, applying explicit overrides."""

    settings = Settings()
    updates = {key: value for key, value in overrides.items() if value is not None}
    if updates:
        settings = settings.model_copy(update=updates)
    return settings
