# OpenAI transport — Chat Completions streaming via the async SDK.
# Created: 2026-02-21

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from openai import AsyncOpenAI

from agentage.llm.protocol import (
    Message,
    StreamChunk,
    TextChunk,
    ToolCall,
    TurnComplete,
    TurnRequest,
)

logger = logging.getLogger(__name__)

_STOP_REASONS = {
    "stop": "end_turn",
    "tool_calls": "tool_use",
    "function_call": "tool_use",
    "length": "max_tokens",
    "content_filter": "end_turn",
}


def to_openai_messages(system: list[str], messages: list[Message]) -> list[dict[str, Any]]:
    params: list[dict[str, Any]] = []
    if system:
        params.append({"role": "system", "content": "\n\n".join(system)})
    for msg in messages:
        if msg.tool_results:
            params.extend(
                {"role": "tool", "tool_call_id": r.tool_call_id, "content": r.content}
                for r in msg.tool_results
            )
        elif msg.tool_calls:
            params.append(
                {
                    "role": "assistant",
                    "content": msg.content or None,
                    "tool_calls": [
                        {
                            "id": c.id,
                            "type": "function",
                            "function": {"name": c.name, "arguments": json.dumps(c.input)},
                        }
                        for c in msg.tool_calls
                    ],
                }
            )
        else:
            params.append({"role": msg.role, "content": msg.content})
    return params


def _parse_arguments(raw: str) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except ValueError:
        logger.warning("Model sent non-JSON tool arguments: %.200s", raw)
        return {}
    return parsed if isinstance(parsed, dict) else {}


class OpenAITransport:
    def __init__(self, client: AsyncOpenAI):
        self.client = client

    async def stream(self, turn: TurnRequest) -> AsyncIterator[StreamChunk]:
        kwargs: dict[str, Any] = {
            "model": turn.model,
            "messages": to_openai_messages(turn.system, turn.messages),
            "max_completion_tokens": turn.max_tokens,
            "stream": True,
            "stream_options": {"include_usage": True},
        }
        if turn.tools:
            kwargs["tools"] = [t.to_openai_schema() for t in turn.tools]
        if turn.temperature is not None:
            kwargs["temperature"] = turn.temperature
        if turn.top_p is not None:
            kwargs["top_p"] = turn.top_p

        text_parts: list[str] = []
        # index → [id, name, arguments]
        pending: dict[int, list[str]] = {}
        finish_reason = None
        input_tokens = output_tokens = 0

        stream = await self.client.chat.completions.create(**kwargs)
        async with stream:
            async for chunk in stream:
                if chunk.usage is not None:
                    input_tokens = chunk.usage.prompt_tokens or 0
                    output_tokens = chunk.usage.completion_tokens or 0
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                if delta.content:
                    text_parts.append(delta.content)
                    yield TextChunk(delta.content)
                for tc in delta.tool_calls or []:
                    slot = pending.setdefault(tc.index, ["", "", ""])
                    if tc.id:
                        slot[0] = tc.id
                    if tc.function is not None:
                        slot[1] += tc.function.name or ""
                        slot[2] += tc.function.arguments or ""
                if choice.finish_reason:
                    finish_reason = choice.finish_reason

        calls = [
            ToolCall(id=call_id, name=name, input=_parse_arguments(args))
            for _, (call_id, name, args) in sorted(pending.items())
        ]
        yield TurnComplete(
            stop_reason=_STOP_REASONS.get(finish_reason or "stop", "end_turn"),
            text="".join(text_parts),
            tool_calls=calls,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
        )
