# Tool registry — layered catalog of builtin, global and workspace tools.
# Created: 2026-02-21

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from agentage.tools.command import load_command_tools
from agentage.tools.protocol import BaseTool, ToolSource

logger = logging.getLogger(__name__)

# Later layers override earlier ones by tool name.
LAYERS: tuple[ToolSource, ...] = ("builtin", "global", "workspace")


class ToolRegistry:
    """
    Registry for the three tool layers.

    Usage:
        registry = ToolRegistry()
        registry.register(ShellTool())
        registry.load_directory(config_dir / "tools", "global")
        registry.set_workspace("/path/to/project")

        tool = registry.get("run_shell")  # workspace > global > builtin
        definitions = registry.get_definitions(["run_shell"], format="anthropic")
    """

    def __init__(self) -> None:
        self._layers: dict[ToolSource, dict[str, BaseTool]] = {layer: {} for layer in LAYERS}
        self._workspace: str | None = None

    def register(self, tool: BaseTool, source: ToolSource | None = None) -> None:
        layer = source or tool.source
        self._layers[layer][tool.name] = tool
        logger.debug("🔧 Registered %s tool: %s", layer, tool.name)

    def unregister(self, name: str, source: ToolSource = "builtin") -> None:
        if self._layers[source].pop(name, None) is not None:
            logger.debug("🔧 Unregistered %s tool: %s", source, name)

    def clear(self, source: ToolSource) -> None:
        self._layers[source].clear()

    def load_directory(self, directory: Path, source: ToolSource) -> int:
        """Replace the *source* layer with command tools from *directory*."""
        self.clear(source)
        tools = load_command_tools(directory, source)
        for tool in tools:
            self.register(tool, source)
        if tools:
            logger.info("Loaded %d %s tool(s) from %s", len(tools), source, directory)
        return len(tools)

    def set_workspace(self, workspace_path: str | None) -> None:
        """Point the workspace layer at *workspace_path* (reloads on change)."""
        if workspace_path == self._workspace:
            return
        self._workspace = workspace_path
        if workspace_path is None:
            self.clear("workspace")
        else:
            self.load_directory(Path(workspace_path) / ".agentage" / "tools", "workspace")

    def merged(self) -> dict[str, BaseTool]:
        tools: dict[str, BaseTool] = {}
        for layer in LAYERS:
            tools.update(self._layers[layer])
        return tools

    def get(self, name: str) -> BaseTool | None:
        for layer in reversed(LAYERS):
            tool = self._layers[layer].get(name)
            if tool is not None:
                return tool
        return None

    def has(self, name: str) -> bool:
        return self.get(name) is not None

    def get_definitions(
        self, names: list[str] | None = None, format: str = "openai"
    ) -> list[dict[str, Any]]:
        """Definitions for *names* (all tools when None) in provider format."""
        tools = self.merged()
        selected = tools.values() if names is None else [tools[n] for n in names if n in tools]
        definitions = []
        for tool in selected:
            defn = tool.definition
            if format == "anthropic":
                definitions.append(defn.to_anthropic_schema())
            else:
                definitions.append(defn.to_openai_schema())
        return definitions
