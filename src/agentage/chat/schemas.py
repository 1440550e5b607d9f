# Chat request and session schemas.
# Created: 2026-02-21

from __future__ import annotations

from typing import Any, Literal

from pydantic import ConfigDict, Field

from agentage.storage.conversations import CONVERSATION_ID_PATTERN
from agentage.storage.documents import CamelModel


class ModelOptions(CamelModel):
    model_config = ConfigDict(frozen=True)

    max_tokens: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=None, ge=0, le=2)
    top_p: float | None = Field(default=None, ge=0, le=1)


class SessionConfig(CamelModel):
    """Active session settings. Immutable; ``configure`` swaps the whole object."""

    model_config = ConfigDict(frozen=True)

    conversation_id: str | None = Field(default=None, pattern=CONVERSATION_ID_PATTERN)
    model: str = Field(..., min_length=1)
    system: str | None = None
    agent: str | None = None
    tools: tuple[str, ...] | None = None
    options: ModelOptions | None = None


class ChatReference(CamelModel):
    type: Literal["file", "selection", "image"]
    uri: str
    content: str | None = None
    range: dict[str, Any] | None = None


class ChatSendRequest(CamelModel):
    prompt: str = Field(..., min_length=1, max_length=200_000)
    references: list[ChatReference] = Field(default_factory=list)

    def render_prompt(self) -> str:
        """Prompt text with reference contents prepended."""
        blocks = [f"[{r.type}: {r.uri}]\n{r.content}" for r in self.references if r.content]
        if not blocks:
            return self.prompt
        return "\n\n".join([*blocks, self.prompt])
