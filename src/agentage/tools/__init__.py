# Tools — protocol, layered registry, dispatcher and builtins.
# Created: 2026-02-21

from agentage.tools.dispatcher import ToolDispatcher
from agentage.tools.protocol import BaseTool, ToolContext, ToolDefinition, ToolError, ToolResult
from agentage.tools.registry import ToolRegistry

__all__ = [
    "BaseTool",
    "ToolContext",
    "ToolDefinition",
    "ToolDispatcher",
    "ToolError",
    "ToolRegistry",
    "ToolResult",
]
