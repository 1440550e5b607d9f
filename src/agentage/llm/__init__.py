"""LLM transports behind a provider-neutral streaming protocol."""

from agentage.llm.client import (
    CredentialsMissing,
    LLMClient,
    SubscriptionTokenUnsupported,
    resolve_llm_client,
)
from agentage.llm.protocol import (
    ChatTransport,
    Message,
    StreamChunk,
    TextChunk,
    ThinkingChunk,
    ToolCall,
    ToolResultBlock,
    TurnComplete,
    TurnRequest,
)

__all__ = [
    "ChatTransport",
    "CredentialsMissing",
    "LLMClient",
    "Message",
    "StreamChunk",
    "SubscriptionTokenUnsupported",
    "TextChunk",
    "ThinkingChunk",
    "ToolCall",
    "ToolResultBlock",
    "TurnComplete",
    "TurnRequest",
    "resolve_llm_client",
]
