# Model provider records — the models.json schema and registry results.
# Created: 2026-02-21

from __future__ import annotations

from typing import Literal

from pydantic import Field, model_validator

from agentage.oauth.models import ProviderId
from agentage.storage.documents import CamelModel

TokenSource = Literal["manual", "oauth:openai", "oauth:anthropic"]


def oauth_source(provider: ProviderId) -> TokenSource:
    return f"oauth:{provider.value}"  # type: ignore[return-value]


class ModelInfo(CamelModel):
    id: str
    display_name: str
    created_at: str | None = None
    enabled: bool = False
    is_default: bool | None = None


class ModelProviderConfig(CamelModel):
    """One configured provider. ``token`` exists only for manual sources."""

    provider: ProviderId
    source: TokenSource = "manual"
    token: str | None = None
    enabled: bool = True
    last_fetched_at: str | None = None  # ISO 8601
    models: list[ModelInfo] = Field(default_factory=list)

    @model_validator(mode="after")
    def _token_only_for_manual(self) -> ModelProviderConfig:
        if self.source != "manual" and self.token is not None:
            raise ValueError("token must not be stored for an OAuth-backed provider")
        return self

    @property
    def oauth_provider(self) -> ProviderId | None:
        if self.source.startswith("oauth:"):
            return ProviderId(self.source.split(":", 1)[1])
        return None


class ModelsConfig(CamelModel):
    providers: list[ModelProviderConfig] = Field(default_factory=list)

    def get(self, provider: ProviderId) -> ModelProviderConfig | None:
        return next((p for p in self.providers if p.provider == provider), None)

    def upsert(self, config: ModelProviderConfig) -> None:
        self.providers = [p for p in self.providers if p.provider != config.provider]
        self.providers.append(config)


class ValidateTokenRequest(CamelModel):
    provider: ProviderId
    token: str = Field(..., min_length=1)


class ValidateTokenResponse(CamelModel):
    valid: bool
    models: list[ModelInfo] | None = None
    error: Literal["invalid_token", "network_error"] | None = None


class SaveProviderRequest(CamelModel):
    provider: ProviderId
    source: TokenSource = "manual"
    token: str | None = None
    enabled: bool = True
    models: list[ModelInfo] | None = None


class SaveProviderResult(CamelModel):
    success: bool
    providers: list[ModelProviderConfig] | None = None
    models: list[ChatModelInfo] | None = None
    error: str | None = None


class LoadProvidersResult(CamelModel):
    providers: list[ModelProviderConfig]


class ChatModelInfo(CamelModel):
    """Enabled model as offered to the chat surface."""

    id: str
    name: str
    provider: ProviderId
    context_window: int


SaveProviderResult.model_rebuild()
