# Chat schemas.
# Created: 2026-02-21

from __future__ import annotations

from typing import Any

from pydantic import Field

from agentage.api.v1.schemas.common import APIResponse
from agentage.chat.schemas import ChatSendRequest
from agentage.storage.documents import CamelModel


class ChatSendBody(ChatSendRequest):
    """Send a prompt. ``requestId`` is generated when omitted."""

    request_id: str | None = Field(default=None, min_length=1, max_length=128)


class ChatCancelRequest(CamelModel):
    request_id: str = Field(..., min_length=1)


class ChatCancelResponse(APIResponse):
    request_id: str
    cancelled: bool


class ToolToggleRequest(CamelModel):
    enabled: bool


class ToolInfoResponse(APIResponse):
    name: str
    description: str
    source: str
    enabled: bool
    parameters: dict[str, Any] = {}


class AgentInfoResponse(APIResponse):
    id: str
    name: str
    description: str
    path: str
