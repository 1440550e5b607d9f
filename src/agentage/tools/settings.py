# Tool enablement settings — tools.json.
# Created: 2026-02-21

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import Field

from agentage.storage.documents import CamelModel, JsonDocument

logger = logging.getLogger(__name__)

DEFAULT_ENABLED_TOOLS = ["search_github", "fetch_url"]


class ToolSettings(CamelModel):
    enabled_tools: list[str] = Field(default_factory=lambda: list(DEFAULT_ENABLED_TOOLS))


class ToolSettingsStore:
    def __init__(self, config_dir: Path):
        self.document = JsonDocument(config_dir / "tools.json", ToolSettings)

    async def get(self) -> ToolSettings:
        return await self.document.load()

    async def set_enabled(self, name: str, enabled: bool) -> ToolSettings:
        async with self.document.transaction() as settings:
            names = [n for n in settings.enabled_tools if n != name]
            if enabled:
                names.append(name)
            settings.enabled_tools = names
        logger.info("Tool %s %s", name, "enabled" if enabled else "disabled")
        return settings
