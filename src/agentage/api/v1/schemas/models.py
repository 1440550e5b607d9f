# Model provider schemas.
# Created: 2026-02-21

from __future__ import annotations

from pydantic import Field

from agentage.api.v1.schemas.common import APIResponse
from agentage.catalog.models import ChatModelInfo, ModelInfo, ModelProviderConfig
from agentage.oauth.models import ProviderId
from agentage.storage.documents import CamelModel


class ProviderView(APIResponse):
    """A configured provider as returned over HTTP. The API key never leaves."""

    provider: ProviderId
    source: str
    has_token: bool
    enabled: bool
    last_fetched_at: str | None = None
    models: list[ModelInfo] = Field(default_factory=list)

    @classmethod
    def from_config(cls, config: ModelProviderConfig) -> ProviderView:
        return cls(
            provider=config.provider,
            source=config.source,
            has_token=bool(config.token) or config.oauth_provider is not None,
            enabled=config.enabled,
            last_fetched_at=config.last_fetched_at,
            models=config.models,
        )


class ProvidersResponse(APIResponse):
    providers: list[ProviderView]


class SaveProviderResponse(APIResponse):
    success: bool
    providers: list[ProviderView] | None = None
    models: list[ChatModelInfo] | None = None
    error: str | None = None


class ModelToggleRequest(CamelModel):
    enabled: bool
