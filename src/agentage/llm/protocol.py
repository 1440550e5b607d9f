"""Provider-neutral streaming contract.

The chat controller speaks only these types. Each transport translates
``Message`` history into its provider's wire format and yields
``StreamChunk`` objects back: text and thinking deltas while the provider
streams, then one ``TurnComplete`` per provider turn.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal, Protocol

from agentage.tools.protocol import ToolDefinition


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


@dataclass
class ToolCall:
    id: str
    name: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class ToolResultBlock:
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


@dataclass
class Message:
    """One history entry. Tool results travel in a user-role message."""

    role: Literal["user", "assistant"]
    content: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_results: list[ToolResultBlock] = field(default_factory=list)
    timestamp: str = field(default_factory=_now_iso)


@dataclass
class TurnRequest:
    model: str
    messages: list[Message]
    system: list[str] = field(default_factory=list)
    tools: list[ToolDefinition] = field(default_factory=list)
    max_tokens: int = 4096
    temperature: float | None = None
    top_p: float | None = None


@dataclass
class TextChunk:
    text: str


@dataclass
class ThinkingChunk:
    text: str


@dataclass
class TurnComplete:
    """End of one provider turn.

    ``stop_reason`` is normalized to the Anthropic vocabulary: ``end_turn``,
    ``tool_use``, ``max_tokens`` or ``stop_sequence``.
    """

    stop_reason: str
    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0


StreamChunk = TextChunk | ThinkingChunk | TurnComplete


class ChatTransport(Protocol):
    """Streams one provider turn."""

    def stream(self, turn: TurnRequest) -> AsyncIterator[StreamChunk]:
        """Yield deltas, then exactly one ``TurnComplete``.

        Provider failures propagate as the SDK's own exceptions. Cancelling
        the consuming task closes the underlying HTTP stream.
        """
        ...
