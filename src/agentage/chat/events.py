# Chat stream events — tagged records delivered per request.
# Created: 2026-02-21
#
# A request yields zero or more non-terminal events followed by exactly one
# terminal event (done, error or cancelled).

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import Field

from agentage.storage.documents import CamelModel

ErrorCode = Literal[
    "AUTH_ERROR",
    "RATE_LIMIT",
    "CONTEXT_LENGTH",
    "NETWORK_ERROR",
    "TOOL_ERROR",
    "INTERNAL_ERROR",
]


class _ChatEventBase(CamelModel):
    request_id: str

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class TextDeltaEvent(_ChatEventBase):
    type: Literal["text-delta"] = "text-delta"
    text: str


class ThinkingEvent(_ChatEventBase):
    type: Literal["thinking"] = "thinking"
    text: str


class ToolCallEvent(_ChatEventBase):
    type: Literal["tool-call"] = "tool-call"
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class ToolResultEvent(_ChatEventBase):
    type: Literal["tool-result"] = "tool-result"
    id: str
    name: str
    success: bool
    output: Any = None
    error: str | None = None


class DoneEvent(_ChatEventBase):
    type: Literal["done"] = "done"
    stop_reason: str = "end_turn"
    input_tokens: int = 0
    output_tokens: int = 0


class ErrorEvent(_ChatEventBase):
    type: Literal["error"] = "error"
    code: ErrorCode
    message: str
    recoverable: bool = False


class CancelledEvent(_ChatEventBase):
    type: Literal["cancelled"] = "cancelled"
    reason: str | None = None


ChatEvent = Annotated[
    TextDeltaEvent
    | ThinkingEvent
    | ToolCallEvent
    | ToolResultEvent
    | DoneEvent
    | ErrorEvent
    | CancelledEvent,
    Field(discriminator="type"),
]

TERMINAL_EVENTS = (DoneEvent, ErrorEvent, CancelledEvent)


def is_terminal(event: _ChatEventBase) -> bool:
    return isinstance(event, TERMINAL_EVENTS)
