# Conversation store — one JSON document per conversation.
# Created: 2026-02-21
#
# <config_dir>/conversations/<id>.json holds the session settings the
# conversation was started with, every user, assistant and tool-result
# message, and the accumulated token usage.

from __future__ import annotations

import asyncio
import logging
import re
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Literal

from pydantic import Field

from agentage.llm.protocol import Message, ToolCall, ToolResultBlock
from agentage.storage.documents import CamelModel, JsonDocument

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New conversation"
_TITLE_CHARS = 50
CONVERSATION_ID_PATTERN = r"^[A-Za-z0-9][A-Za-z0-9_-]{0,127}$"
_VALID_ID = re.compile(CONVERSATION_ID_PATTERN)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def derive_title(prompt: str) -> str:
    """Title from the first user prompt, cut at a word boundary."""
    text = " ".join(prompt.split())
    if not text:
        return DEFAULT_TITLE
    if len(text) <= _TITLE_CHARS:
        return text
    head = text[:_TITLE_CHARS]
    space = head.rfind(" ")
    return (head[:space] if space > 30 else head) + "..."


class StoredToolCall(CamelModel):
    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class StoredToolResult(CamelModel):
    tool_call_id: str
    name: str
    content: str
    is_error: bool = False


class StoredMessage(CamelModel):
    role: Literal["user", "assistant"]
    content: str = ""
    tool_calls: list[StoredToolCall] = Field(default_factory=list)
    tool_results: list[StoredToolResult] = Field(default_factory=list)
    timestamp: str = Field(default_factory=_now_iso)

    @classmethod
    def from_message(cls, message: Message) -> StoredMessage:
        return cls(
            role=message.role,
            content=message.content,
            tool_calls=[
                StoredToolCall(id=c.id, name=c.name, input=c.input) for c in message.tool_calls
            ],
            tool_results=[
                StoredToolResult(
                    tool_call_id=r.tool_call_id, name=r.name, content=r.content, is_error=r.is_error
                )
                for r in message.tool_results
            ],
            timestamp=message.timestamp,
        )

    def to_message(self) -> Message:
        return Message(
            role=self.role,
            content=self.content,
            tool_calls=[ToolCall(c.id, c.name, dict(c.input)) for c in self.tool_calls],
            tool_results=[
                ToolResultBlock(r.tool_call_id, r.name, r.content, r.is_error)
                for r in self.tool_results
            ],
            timestamp=self.timestamp,
        )


class ConversationUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


class ConversationSnapshot(CamelModel):
    id: str = ""
    title: str = DEFAULT_TITLE
    model: str | None = None
    agent: str | None = None
    messages: list[StoredMessage] = Field(default_factory=list)
    usage: ConversationUsage = Field(default_factory=ConversationUsage)
    created_at: str = ""
    updated_at: str = ""

    def history(self) -> list[Message]:
        return [m.to_message() for m in self.messages]


class ConversationSummary(CamelModel):
    id: str
    title: str
    model: str | None = None
    agent: str | None = None
    message_count: int = 0
    usage: ConversationUsage = Field(default_factory=ConversationUsage)
    created_at: str = ""
    updated_at: str = ""

    @classmethod
    def of(cls, snapshot: ConversationSnapshot) -> ConversationSummary:
        return cls(
            id=snapshot.id,
            title=snapshot.title,
            model=snapshot.model,
            agent=snapshot.agent,
            message_count=len(snapshot.messages),
            usage=snapshot.usage,
            created_at=snapshot.created_at,
            updated_at=snapshot.updated_at,
        )


class ConversationStore:
    """Persisted chat conversations under ``<config_dir>/conversations``.

    Ids that could escape the directory are treated as unknown: reads return
    nothing and writes are refused with ``ValueError``.
    """

    def __init__(self, config_dir: Path):
        self.directory = Path(config_dir) / "conversations"
        self._documents: dict[str, JsonDocument[ConversationSnapshot]] = {}

    @staticmethod
    def is_valid_id(conversation_id: str) -> bool:
        return bool(_VALID_ID.match(conversation_id))

    def _document(self, conversation_id: str) -> JsonDocument[ConversationSnapshot]:
        if not self.is_valid_id(conversation_id):
            raise ValueError(f"Invalid conversation id: {conversation_id!r}")
        document = self._documents.get(conversation_id)
        if document is None:
            path = self.directory / f"{conversation_id}.json"
            document = JsonDocument(path, ConversationSnapshot)
            self._documents[conversation_id] = document
        return document

    async def get(self, conversation_id: str) -> ConversationSnapshot | None:
        if not self.is_valid_id(conversation_id):
            return None
        document = self._document(conversation_id)
        if not document.path.exists():
            return None
        snapshot = await document.load()
        # load() falls back to defaults for a corrupt file
        return snapshot if snapshot.id == conversation_id else None

    async def append(
        self,
        conversation_id: str,
        messages: list[Message],
        *,
        model: str | None = None,
        agent: str | None = None,
    ) -> ConversationSnapshot:
        """Add *messages*, creating the conversation on first use."""
        async with self._document(conversation_id).transaction() as snapshot:
            now = _now_iso()
            if snapshot.id != conversation_id:
                snapshot.id = conversation_id
                snapshot.created_at = now
                logger.info("Created conversation %s", conversation_id)
            snapshot.model = model or snapshot.model
            snapshot.agent = agent if agent is not None else snapshot.agent
            snapshot.messages.extend(StoredMessage.from_message(m) for m in messages)
            if snapshot.title == DEFAULT_TITLE:
                prompt = next(
                    (m.content for m in snapshot.messages if m.role == "user" and m.content), ""
                )
                snapshot.title = derive_title(prompt)
            snapshot.updated_at = now
        return snapshot

    async def add_usage(
        self, conversation_id: str, input_tokens: int, output_tokens: int
    ) -> ConversationUsage | None:
        """Accumulate token usage. Unknown conversations are left alone."""
        if await self.get(conversation_id) is None:
            return None
        async with self._document(conversation_id).transaction() as snapshot:
            usage = snapshot.usage
            usage.input_tokens += input_tokens
            usage.output_tokens += output_tokens
            usage.total_tokens = usage.input_tokens + usage.output_tokens
            snapshot.updated_at = _now_iso()
        return usage

    async def list_conversations(self, limit: int | None = None) -> list[ConversationSummary]:
        """Summaries, most recently updated first."""
        if not self.directory.is_dir():
            return []
        ids = [p.stem for p in self.directory.glob("*.json") if self.is_valid_id(p.stem)]
        snapshots = await asyncio.gather(*(self.get(i) for i in ids))
        summaries = [ConversationSummary.of(s) for s in snapshots if s is not None]
        summaries.sort(key=lambda s: s.updated_at, reverse=True)
        return summaries[:limit] if limit is not None else summaries

    async def clear_messages(self, conversation_id: str) -> bool:
        if await self.get(conversation_id) is None:
            return False
        async with self._document(conversation_id).transaction() as snapshot:
            snapshot.messages = []
            snapshot.usage = ConversationUsage()
            snapshot.title = DEFAULT_TITLE
            snapshot.updated_at = _now_iso()
        return True

    async def delete(self, conversation_id: str) -> bool:
        if not self.is_valid_id(conversation_id):
            return False
        path = self._document(conversation_id).path
        self._documents.pop(conversation_id, None)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            return False
        logger.info("Deleted conversation %s", conversation_id)
        return True
