"""Identity provider adapters, keyed by ProviderId."""

from __future__ import annotations

from agentage.oauth.base import OAuthProvider
from agentage.oauth.models import ProviderId
from agentage.oauth.providers.anthropic import AnthropicOAuthProvider
from agentage.oauth.providers.openai import OpenAIOAuthProvider

_ADAPTERS: dict[ProviderId, type[OAuthProvider]] = {
    ProviderId.OPENAI: OpenAIOAuthProvider,
    ProviderId.ANTHROPIC: AnthropicOAuthProvider,
}


def create_adapters(callback_timeout: float = 300.0) -> dict[ProviderId, OAuthProvider]:
    """Instantiate one adapter per supported provider."""
    return {pid: cls(callback_timeout=callback_timeout) for pid, cls in _ADAPTERS.items()}


__all__ = ["AnthropicOAuthProvider", "OpenAIOAuthProvider", "create_adapters"]
