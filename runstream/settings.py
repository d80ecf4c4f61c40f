"""Client settings using pydantic-settings.

Loads configuration from ``RUNSTREAM_*`` environment variables with .env
file support.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from runstream.exceptions import ConfigurationError


class Settings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RUNSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    environment: Literal["development", "staging", "production", "testing"] = "development"
    debug: bool = False
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    # Orchestrator server
    api_url: str = Field(
        default="http://localhost:8080",
        description="Base URL of the orchestration server REST API",
    )
    ws_url: str | None = Field(
        default=None,
        description="Base URL for the run event stream (derived from api_url if unset)",
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Timeout in seconds for boundary REST calls",
    )

    # Stream reconnection: delay = min(max, base * factor ** attempt)
    reconnect_base_delay: float = Field(default=0.5, gt=0)
    reconnect_factor: float = Field(default=1.6, ge=1.0)
    reconnect_max_delay: float = Field(default=8.0, gt=0)

    # Forwarded verbatim in start requests; the client never picks these
    default_provider: str | None = Field(
        default=None,
        description="Provider name sent with new runs (server default if unset)",
    )
    default_model: str | None = Field(
        default=None,
        description="Model name sent with new runs (server default if unset)",
    )

    @model_validator(mode="after")
    def _check_urls(self) -> "Settings":
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigurationError(f"api_url must be http(s), got {self.api_url!r}")
        if self.ws_url and not self.ws_url.startswith(("ws://", "wss://")):
            raise ConfigurationError(f"ws_url must be ws(s), got {self.ws_url!r}")
        return self

    @property
    def stream_url(self) -> str:
        """Base WebSocket URL, with the scheme swapped from ``api_url`` when not set."""
        if self.ws_url:
            return self.ws_url.rstrip("/")
        base = self.api_url.rstrip("/")
        if base.startswith("https://"):
            return "wss://" + base[len("https://") :]
        return "ws://" + base[len("http://") :]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings instance (cached after first call)
    """
    return Settings()
