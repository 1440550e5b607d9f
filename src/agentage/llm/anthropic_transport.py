# Anthropic transport — Messages API streaming via the async SDK.
# Created: 2026-02-21

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any

from anthropic import AsyncAnthropic

from agentage.llm.protocol import (
    Message,
    StreamChunk,
    TextChunk,
    ThinkingChunk,
    ToolCall,
    TurnComplete,
    TurnRequest,
)

logger = logging.getLogger(__name__)


def to_anthropic_messages(messages: list[Message]) -> list[dict[str, Any]]:
    """Translate neutral history into Messages API params."""
    params: list[dict[str, Any]] = []
    for msg in messages:
        if msg.tool_results:
            params.append(
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "tool_result",
                            "tool_use_id": r.tool_call_id,
                            "content": r.content,
                            "is_error": r.is_error,
                        }
                        for r in msg.tool_results
                    ],
                }
            )
        elif msg.tool_calls:
            blocks: list[dict[str, Any]] = []
            if msg.content:
                blocks.append({"type": "text", "text": msg.content})
            blocks.extend(
                {"type": "tool_use", "id": c.id, "name": c.name, "input": c.input}
                for c in msg.tool_calls
            )
            params.append({"role": "assistant", "content": blocks})
        else:
            params.append({"role": msg.role, "content": msg.content})
    return params


class AnthropicTransport:
    def __init__(self, client: AsyncAnthropic):
        self.client = client

    async def stream(self, turn: TurnRequest) -> AsyncIterator[StreamChunk]:
        kwargs: dict[str, Any] = {
            "model": turn.model,
            "max_tokens": turn.max_tokens,
            "messages": to_anthropic_messages(turn.messages),
        }
        if turn.system:
            kwargs["system"] = [{"type": "text", "text": text} for text in turn.system]
        if turn.tools:
            kwargs["tools"] = [t.to_anthropic_schema() for t in turn.tools]
        if turn.temperature is not None:
            kwargs["temperature"] = turn.temperature
        if turn.top_p is not None:
            kwargs["top_p"] = turn.top_p

        async with self.client.messages.stream(**kwargs) as stream:
            async for event in stream:
                if event.type != "content_block_delta":
                    continue
                delta = event.delta
                if delta.type == "text_delta":
                    yield TextChunk(delta.text)
                elif delta.type == "thinking_delta":
                    yield ThinkingChunk(delta.thinking)
            final = await stream.get_final_message()

        text = "".join(b.text for b in final.content if b.type == "text")
        calls = [
            ToolCall(id=b.id, name=b.name, input=dict(b.input or {}))
            for b in final.content
            if b.type == "tool_use"
        ]
        yield TurnComplete(
            stop_reason=final.stop_reason or "end_turn",
            text=text,
            tool_calls=calls,
            input_tokens=final.usage.input_tokens,
            output_tokens=final.usage.output_tokens,
        )
