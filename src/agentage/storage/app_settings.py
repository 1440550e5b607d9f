# App settings and account session documents.
# Created: 2026-02-21
#
# settings.json — user preferences (theme, default provider, active workspace).
# config.json   — the signed-in agentage account and registry endpoint.

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field

from agentage.storage.documents import CamelModel, JsonDocument

logger = logging.getLogger(__name__)


class AppSettings(CamelModel):
    theme: Literal["light", "dark", "system"] = "system"
    language: str = "en"
    log_retention: Literal[7, 30, 90, -1] = 30
    default_model_provider: str | None = None
    active_workspace: str | None = None


class AccountUser(CamelModel):
    id: str
    email: str
    name: str | None = None
    avatar: str | None = None
    verified_alias: str | None = None


class AccountAuth(CamelModel):
    token: str = Field(..., min_length=1)
    expires_at: str | None = None  # ISO 8601
    user: AccountUser | None = None


class RegistryConfig(CamelModel):
    url: str = "https://dev.agentage.io"


class AccountConfig(CamelModel):
    auth: AccountAuth | None = None
    registry: RegistryConfig | None = None
    device_id: str | None = None


class SettingsStore:
    """Read and update ``settings.json``."""

    def __init__(self, config_dir: Path):
        self.document = JsonDocument(config_dir / "settings.json", AppSettings)

    async def get(self) -> AppSettings:
        return await self.document.load()

    async def update(self, **changes) -> AppSettings:
        async with self.document.transaction() as current:
            for key, value in changes.items():
                setattr(current, key, value)
        logger.info("Updated app settings: %s", ", ".join(sorted(changes)) or "nothing")
        return current


class AccountStore:
    """Owner-only ``config.json`` holding the account session."""

    def __init__(self, config_dir: Path):
        self.document = JsonDocument(config_dir / "config.json", AccountConfig, private=True)

    async def load(self) -> AccountConfig:
        return await self.document.load()

    async def set_auth(self, auth: AccountAuth | None) -> None:
        async with self.document.transaction() as config:
            config.auth = auth
