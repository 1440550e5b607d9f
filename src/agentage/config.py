"""Application settings.

Values come from ``AGENTAGE_*`` environment variables or a local ``.env``
file. The config directory holds every persisted document and is created
lazily by the first write, never at import time.

Created: 2026-02-21
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


def _default_config_dir() -> Path:
    return Path.home() / ".agentage"


class Settings(BaseSettings):
    """Runtime configuration for the desktop core."""

    model_config = SettingsConfigDict(
        env_prefix="AGENTAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    config_dir: Path = Field(default_factory=_default_config_dir)
    backend_url: str = "https://dev.agentage.io"

    # Local API server
    api_host: str = "127.0.0.1"
    api_port: int = 8765
    api_cors_allowed_origins: list[str] = Field(default_factory=list)

    log_level: str = "INFO"

    # Chat turn limits
    max_tool_iterations: int = Field(default=10, ge=1)
    max_tool_result_chars: int = Field(default=30_000, ge=1000)
    default_max_tokens: int = Field(default=4096, ge=1)

    # Tool execution (seconds)
    tool_timeout: float = Field(default=120.0, gt=0)
    tool_abort_grace: float = Field(default=5.0, gt=0)

    # OAuth
    oauth_callback_timeout: float = Field(default=300.0, gt=0)
    model_staleness_hours: float = Field(default=24.0, gt=0)

    @classmethod
    def load(cls) -> Settings:
        """Build settings from the environment."""
        return cls()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    return Settings.load()


def get_config_dir() -> Path:
    """Return the user-scoped config directory (may not exist yet)."""
    return get_settings().config_dir
