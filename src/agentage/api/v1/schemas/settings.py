# Settings schemas.
# Created: 2026-02-21

from __future__ import annotations

from typing import Literal

from agentage.storage.documents import CamelModel


class SettingsUpdateRequest(CamelModel):
    """Settings update — only provided fields are changed."""

    theme: Literal["light", "dark", "system"] | None = None
    language: str | None = None
    log_retention: Literal[7, 30, 90, -1] | None = None
    default_model_provider: str | None = None
    active_workspace: str | None = None
