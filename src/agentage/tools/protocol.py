# Tool protocol — definitions, execution context and results.
# Created: 2026-02-21
#
# Handlers return plain data and raise on failure; the dispatcher turns both
# outcomes into a ToolResult tagged with the originating call id.

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Literal

if TYPE_CHECKING:
    from agentage.cancellation import CancellationToken

ToolSource = Literal["builtin", "global", "workspace"]


class ToolError(Exception):
    """A handler failure whose message is safe to show the model."""


@dataclass
class ToolDefinition:
    """Tool definition for LLM function calling."""

    name: str
    description: str
    parameters: dict[str, Any]  # JSON Schema
    source: ToolSource = "builtin"

    def to_openai_schema(self) -> dict[str, Any]:
        """Convert to OpenAI function calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic_schema(self) -> dict[str, Any]:
        """Convert to Anthropic tool format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


@dataclass
class ToolContext:
    """Per-call execution context."""

    request_id: str = ""
    workspace_path: str | None = None
    cancellation: CancellationToken | None = None

    @property
    def cancelled(self) -> bool:
        return self.cancellation is not None and self.cancellation.is_cancelled


@dataclass
class ToolResult:
    id: str
    name: str
    success: bool
    data: Any = None
    error: str | None = None

    def to_model_text(self, limit: int | None = None) -> str:
        """Text sent back to the model for this call."""
        if not self.success:
            text = f"Error: {self.error}"
        elif isinstance(self.data, str):
            text = self.data
        else:
            text = json.dumps(self.data, indent=2, default=str)
        if limit is not None and len(text) > limit:
            text = text[:limit] + "\n\n[Output truncated...]"
        return text


class BaseTool(ABC):
    """Base class for tools."""

    source: ToolSource = "builtin"

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        """Tool description for LLM."""
        ...

    @property
    def parameters(self) -> dict[str, Any]:
        """Parameter schema. Override in subclass."""
        return {"type": "object", "properties": {}, "required": []}

    @property
    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
            source=self.source,
        )

    @abstractmethod
    async def execute(self, context: ToolContext, **params: Any) -> Any:
        """Run the tool. Raise ``ToolError`` (or any exception) on failure."""
        ...


@dataclass
class ToolInfo:
    """Catalog entry as listed to the chat surface."""

    name: str
    description: str
    source: ToolSource
    enabled: bool = False
    parameters: dict[str, Any] = field(default_factory=dict)
