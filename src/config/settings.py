"""Application-wide configuration loading and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from prompts.loader import load_prompt
from relay.errors import ConfigurationError


class Settings(BaseSettings):
    """Centralized environment configuration.

    Frozen: one instance is built at startup and shared read-only by every
    relay session.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
    )

    environment: Literal["local", "dev", "prod"] = Field(default="local")
    log_level: str = Field(default="INFO")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=5050)
    public_base_url: str | None = Field(
        default=None,
        description="Public base URL for Twilio (e.g. https://<ngrok>.ngrok-free.app).",
    )

    # OpenAI Realtime
    openai_api_key: str | None = Field(default=None)
    openai_realtime_url: str = Field(default="wss://api.openai.com/v1/realtime")
    openai_realtime_model: str = Field(default="gpt-4o-realtime-preview-2024-10-01")
    openai_beta_header: str = Field(default="realtime=v1")
    openai_open_timeout_seconds: float | None = Field(
        default=10.0,
        description="Handshake timeout for the realtime socket. None waits forever.",
    )

    # Conversation
    voice: str = Field(default="alloy")
    temperature: float = Field(default=0.8, ge=0.0, le=2.0)
    system_message: str | None = Field(
        default=None,
        description="Overrides the persona prompt shipped in prompts/garage_assistant.txt.",
    )
    session_update_delay_seconds: float = Field(
        default=0.25,
        ge=0.0,
        description="Pause between the realtime socket opening and the session configuration.",
    )

    @property
    def realtime_ws_url(self) -> str:
        return f"{self.openai_realtime_url}?model={self.openai_realtime_model}"

    @property
    def instructions(self) -> str:
        if self.system_message:
            return self.system_message
        return load_prompt("garage_assistant.txt").strip()


def require_openai_api_key(settings: Settings) -> str:
    if not settings.openai_api_key:
        raise ConfigurationError("Missing OpenAI API key. Please set OPENAI_API_KEY in the .env file.")
    return settings.openai_api_key


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached Settings instance."""

    return Settings()
