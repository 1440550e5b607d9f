# OAuth records — tokens, profiles and the oauth.json document schema.
# Created: 2026-02-21

from __future__ import annotations

from enum import Enum

from pydantic import Field

from agentage.storage.documents import CamelModel


class ProviderId(str, Enum):
    """Closed set of identity / model providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"


class OAuthTokens(CamelModel):
    """Token set returned by an authorization or refresh exchange."""

    access_token: str = Field(..., min_length=1)
    refresh_token: str | None = None
    id_token: str | None = None
    expires_at: int | None = None  # epoch milliseconds
    scopes: list[str] | None = None


class OAuthProfile(CamelModel):
    id: str
    email: str | None = None
    name: str | None = None
    avatar: str | None = None


class OAuthProviderData(CamelModel):
    tokens: OAuthTokens
    profile: OAuthProfile
    connected_at: int  # epoch milliseconds


class OAuthStorageData(CamelModel):
    """Root of oauth.json. A key is present iff that provider is linked."""

    providers: dict[ProviderId, OAuthProviderData] = Field(default_factory=dict)


class ProviderInfo(CamelModel):
    id: ProviderId
    name: str
    description: str


class AuthorizationResult(CamelModel):
    tokens: OAuthTokens
    profile: OAuthProfile


class LinkResult(CamelModel):
    success: bool
    profile: OAuthProfile | None = None
    error: str | None = None


class UnlinkResult(CamelModel):
    success: bool
    error: str | None = None


class LinkedProvider(CamelModel):
    """Public view of a link. Carries no token material."""

    id: ProviderId
    name: str
    profile: OAuthProfile
    connected_at: int
    expires_at: int | None = None


class ProviderStatus(CamelModel):
    id: ProviderId
    name: str
    description: str
    connected: bool
    profile: OAuthProfile | None = None
    expires_at: int | None = None
    is_expired: bool = False
