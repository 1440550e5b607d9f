# OAuth provider adapter contract.
# Created: 2026-02-21
#
# One adapter per ProviderId. Adapters talk to the identity provider only;
# persistence and link state belong to OAuthManager.

from __future__ import annotations

import base64
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any

from agentage.oauth.models import (
    AuthorizationResult,
    OAuthProfile,
    OAuthTokens,
    ProviderId,
    ProviderInfo,
)

logger = logging.getLogger(__name__)

# Tokens within this window of expiry are treated as already expired.
EXPIRY_MARGIN_MS = 5 * 60 * 1000


class OAuthError(Exception):
    """Base class for identity-provider failures."""


class AuthFailed(OAuthError):
    """Authorization was denied, cancelled, timed out or failed in exchange."""


class RefreshFailed(OAuthError):
    """The provider rejected a refresh, or the refresh request itself failed."""


def now_ms() -> int:
    return int(time.time() * 1000)


def is_token_expired(tokens: OAuthTokens, now: int | None = None) -> bool:
    """True when ``expires_at`` is set and lies within the expiry margin."""
    if tokens.expires_at is None:
        return False
    current = now_ms() if now is None else now
    return tokens.expires_at - current <= EXPIRY_MARGIN_MS


def decode_jwt_claims(token: str) -> dict[str, Any]:
    """Decode a JWT payload without verifying it. Returns {} when malformed."""
    parts = token.split(".")
    if len(parts) != 3:
        return {}
    payload = parts[1] + "=" * (-len(parts[1]) % 4)
    try:
        claims = json.loads(base64.urlsafe_b64decode(payload))
    except ValueError:
        return {}
    return claims if isinstance(claims, dict) else {}


def expires_at_from(expires_in: Any, default_seconds: int = 3600) -> int:
    """Convert a relative ``expires_in`` (seconds) to absolute epoch ms."""
    try:
        seconds = int(expires_in)
    except (TypeError, ValueError):
        seconds = default_seconds
    return now_ms() + seconds * 1000


class OAuthProvider(ABC):
    """Adapter for one identity provider."""

    provider_id: ProviderId
    display_name: str
    description: str = ""

    @property
    def info(self) -> ProviderInfo:
        return ProviderInfo(
            id=self.provider_id, name=self.display_name, description=self.description
        )

    @abstractmethod
    async def authorize(self) -> AuthorizationResult:
        """Run the interactive flow. Raises ``AuthFailed``."""
        ...

    @abstractmethod
    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        """Exchange a refresh token. Raises ``RefreshFailed``."""
        ...

    @abstractmethod
    async def fetch_profile(self, tokens: OAuthTokens) -> OAuthProfile:
        """Best-effort profile lookup. May raise on transport failure."""
        ...

    def minimal_profile(self) -> OAuthProfile:
        return OAuthProfile(id=f"{self.provider_id.value}-user", name=self.display_name)

    def is_expired(self, tokens: OAuthTokens, now: int | None = None) -> bool:
        return is_token_expired(tokens, now)

    async def _profile_or_minimal(self, tokens: OAuthTokens) -> OAuthProfile:
        try:
            return await self.fetch_profile(tokens)
        except Exception as e:
            logger.warning(
                "Profile lookup failed for %s, using minimal profile: %s",
                self.provider_id.value,
                e,
            )
            return self.minimal_profile()
