# Chat — session controller, request channels and stream events.
# Created: 2026-02-21

from agentage.chat.channel import RequestChannel
from agentage.chat.controller import ChatSessionController
from agentage.chat.errors import DuplicateRequestError, SessionNotConfiguredError, classify_error
from agentage.chat.events import (
    CancelledEvent,
    ChatEvent,
    DoneEvent,
    ErrorEvent,
    TextDeltaEvent,
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
    is_terminal,
)
from agentage.chat.schemas import ChatReference, ChatSendRequest, ModelOptions, SessionConfig

__all__ = [
    "CancelledEvent",
    "ChatEvent",
    "ChatReference",
    "ChatSendRequest",
    "ChatSessionController",
    "DoneEvent",
    "DuplicateRequestError",
    "ErrorEvent",
    "ModelOptions",
    "RequestChannel",
    "SessionConfig",
    "SessionNotConfiguredError",
    "TextDeltaEvent",
    "ThinkingEvent",
    "ToolCallEvent",
    "ToolResultEvent",
    "classify_error",
    "is_terminal",
]
