# Conversation schemas.
# Created: 2026-02-21

from __future__ import annotations

from agentage.api.v1.schemas.common import APIResponse
from agentage.storage.conversations import ConversationSummary


class ConversationListResponse(APIResponse):
    """Stored conversations, most recently updated first."""

    conversations: list[ConversationSummary]
    total: int
