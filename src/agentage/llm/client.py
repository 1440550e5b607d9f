"""Resolved provider credentials and transport construction.

``resolve_llm_client()`` maps a model id to its provider, fetches a usable
token through the registry (refreshing OAuth tokens when needed) and returns
an immutable ``LLMClient`` that builds the matching transport.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from agentage.catalog.validation import ANTHROPIC_OAUTH_PREFIX, is_jwt
from agentage.llm.protocol import ChatTransport
from agentage.oauth.models import ProviderId

if TYPE_CHECKING:
    from agentage.catalog.registry import ModelProviderRegistry

logger = logging.getLogger(__name__)

# Subscription (OAuth) tokens are only accepted with these betas and with this
# preamble as the first system block.
ANTHROPIC_OAUTH_BETA = "oauth-2025-04-20,claude-code-20250219,interleaved-thinking-2025-05-14"
ANTHROPIC_OAUTH_PREAMBLE = "You are Claude Code, Anthropic's official CLI for Claude."


class CredentialsMissing(Exception):
    """No usable token for the provider serving the requested model."""

    def __init__(self, provider: ProviderId, message: str | None = None):
        self.provider = provider
        super().__init__(
            message
            or f"No credentials for {provider.value}. Add an API key or link your account "
            "in Settings → Models."
        )


class SubscriptionTokenUnsupported(CredentialsMissing):
    """The only credential is an account link the chat API does not accept.

    A linked ChatGPT subscription yields an ID-bound JWT that the Chat
    Completions endpoint rejects; chatting with OpenAI models needs an API key.
    """

    def __init__(self, provider: ProviderId):
        super().__init__(
            provider,
            f"Your linked {provider.value} account cannot be used for chat. "
            "Add an API key in Settings → Models.",
        )


@dataclass(frozen=True)
class LLMClient:
    """Immutable descriptor for a resolved provider configuration.

    Created via ``resolve_llm_client()``, not intended for direct construction.
    """

    provider: ProviderId
    model: str
    token: str

    # -- convenience properties --

    @property
    def is_anthropic(self) -> bool:
        return self.provider == ProviderId.ANTHROPIC

    @property
    def is_oauth(self) -> bool:
        if self.is_anthropic:
            return self.token.startswith(ANTHROPIC_OAUTH_PREFIX)
        return is_jwt(self.token)

    def __repr__(self) -> str:
        return f"LLMClient(provider={self.provider.value!r}, model={self.model!r}, token=***)"

    # -- factory methods --

    def create_anthropic_client(
        self,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        """Create an ``AsyncAnthropic`` client for this token."""
        from anthropic import AsyncAnthropic

        if not self.is_anthropic:
            raise ValueError("Cannot create an Anthropic client for the OpenAI provider.")

        options = {
            "timeout": timeout if timeout is not None else 600.0,
            "max_retries": max_retries if max_retries is not None else 2,
        }
        if self.is_oauth:
            return AsyncAnthropic(
                auth_token=self.token,
                default_headers={"anthropic-beta": ANTHROPIC_OAUTH_BETA},
                **options,
            )
        return AsyncAnthropic(api_key=self.token, **options)

    def create_openai_client(
        self,
        *,
        timeout: float | None = None,
        max_retries: int | None = None,
    ):
        """Create an ``AsyncOpenAI`` client for this token."""
        from openai import AsyncOpenAI

        if self.is_anthropic:
            raise ValueError("Cannot create an OpenAI client for the Anthropic provider.")
        return AsyncOpenAI(
            api_key=self.token,
            timeout=timeout if timeout is not None else 600.0,
            max_retries=max_retries if max_retries is not None else 2,
        )

    def create_transport(self) -> ChatTransport:
        if self.is_anthropic:
            from agentage.llm.anthropic_transport import AnthropicTransport

            return AnthropicTransport(self.create_anthropic_client())
        from agentage.llm.openai_transport import OpenAITransport

        return OpenAITransport(self.create_openai_client())

    def system_blocks(self, system: str | None) -> list[str]:
        """System prompt blocks, with the OAuth preamble first when required."""
        blocks = [system] if system else []
        if self.is_anthropic and self.is_oauth:
            blocks.insert(0, ANTHROPIC_OAUTH_PREAMBLE)
        return blocks


async def resolve_llm_client(registry: ModelProviderRegistry, model: str) -> LLMClient:
    """Build an ``LLMClient`` for *model*.

    Raises:
        CredentialsMissing: the provider has no manual key and no live OAuth link.
        SubscriptionTokenUnsupported: the only token is an OpenAI account link.
    """
    provider = await registry.provider_for_model(model)
    token = await registry.resolve_token(provider)
    if not token:
        raise CredentialsMissing(provider)
    if provider == ProviderId.OPENAI and is_jwt(token):
        raise SubscriptionTokenUnsupported(provider)
    logger.debug("Resolved %s for model %s", provider.value, model)
    return LLMClient(provider=provider, model=model, token=token)
