# OAuth Manager — link lifecycle and refresh-on-demand for provider tokens.
# Created: 2026-02-21
#
# Per provider the link is Unlinked → Linked(fresh) → Linked(expired) →
# Refreshing → Linked(fresh) | Unlinked. A failed refresh deletes the link;
# there is no retry.

from __future__ import annotations

import asyncio
import logging

from agentage.bus import EventBus, ProviderLinkChanged
from agentage.oauth.base import OAuthProvider, RefreshFailed, now_ms
from agentage.oauth.models import (
    LinkedProvider,
    LinkResult,
    OAuthProviderData,
    OAuthTokens,
    ProviderId,
    ProviderStatus,
    UnlinkResult,
)
from agentage.oauth.token_store import CredentialStore

logger = logging.getLogger(__name__)


class OAuthManager:
    """Links identity providers and keeps their tokens fresh.

    Supports:
    - Interactive linking through a provider adapter
    - Idempotent unlinking
    - Refresh-if-needed, coalesced per provider
    - Token-free listings for the UI
    """

    def __init__(
        self,
        store: CredentialStore,
        adapters: dict[ProviderId, OAuthProvider],
        bus: EventBus | None = None,
    ):
        self.store = store
        self.adapters = adapters
        self.bus = bus
        self._locks: dict[ProviderId, asyncio.Lock] = {pid: asyncio.Lock() for pid in adapters}

    def _adapter(self, provider_id: ProviderId) -> OAuthProvider:
        adapter = self.adapters.get(provider_id)
        if adapter is None:
            raise ValueError(f"Unsupported OAuth provider: {provider_id}")
        return adapter

    async def _announce(self, provider_id: ProviderId, linked: bool) -> None:
        if self.bus is not None:
            await self.bus.publish(ProviderLinkChanged(provider=provider_id.value, linked=linked))

    # -- link / unlink --

    async def link_provider(self, provider_id: ProviderId) -> LinkResult:
        """Run the adapter's authorization flow and store the result.

        Failure leaves stored state untouched.
        """
        adapter = self._adapter(provider_id)
        try:
            result = await adapter.authorize()
        except Exception as e:
            logger.warning("Linking %s failed: %s", provider_id.value, e)
            return LinkResult(success=False, error=str(e) or type(e).__name__)

        data = OAuthProviderData(
            tokens=result.tokens, profile=result.profile, connected_at=now_ms()
        )
        async with self._locks[provider_id]:
            await self.store.save_provider(provider_id, data)
        logger.info("Linked %s as %s", provider_id.value, result.profile.email or result.profile.id)
        await self._announce(provider_id, linked=True)
        return LinkResult(success=True, profile=result.profile)

    async def unlink_provider(self, provider_id: ProviderId) -> UnlinkResult:
        self._adapter(provider_id)
        async with self._locks[provider_id]:
            existed = await self.store.get_provider(provider_id) is not None
            await self.store.remove_provider(provider_id)
        if existed:
            await self._announce(provider_id, linked=False)
        return UnlinkResult(success=True)

    # -- tokens --

    async def refresh_token_if_needed(self, provider_id: ProviderId) -> OAuthTokens | None:
        """Return usable tokens, refreshing expired ones.

        Returns None when the provider is not linked, or when the refresh
        failed (the link is deleted in that case).
        """
        adapter = self._adapter(provider_id)
        async with self._locks[provider_id]:
            data = await self.store.get_provider(provider_id)
            if data is None:
                return None
            if not adapter.is_expired(data.tokens):
                return data.tokens

            if not data.tokens.refresh_token:
                logger.warning(
                    "%s token expired with no refresh token; unlinking", provider_id.value
                )
                await self.store.remove_provider(provider_id)
                unlinked = True
                fresh = None
            else:
                try:
                    fresh = await adapter.refresh_token(data.tokens.refresh_token)
                except RefreshFailed as e:
                    logger.warning("Refreshing %s failed, unlinking: %s", provider_id.value, e)
                    await self.store.remove_provider(provider_id)
                    unlinked = True
                    fresh = None
                else:
                    await self.store.save_provider(
                        provider_id,
                        OAuthProviderData(
                            tokens=fresh, profile=data.profile, connected_at=data.connected_at
                        ),
                    )
                    logger.info("Refreshed %s token", provider_id.value)
                    unlinked = False

        if unlinked:
            await self._announce(provider_id, linked=False)
        return fresh

    async def get_access_token(self, provider_id: ProviderId) -> str | None:
        tokens = await self.refresh_token_if_needed(provider_id)
        return tokens.access_token if tokens else None

    # -- listings --

    async def get_linked_providers(self) -> list[LinkedProvider]:
        stored = await self.store.load()
        linked = []
        for provider_id, data in stored.providers.items():
            adapter = self.adapters.get(provider_id)
            linked.append(
                LinkedProvider(
                    id=provider_id,
                    name=adapter.display_name if adapter else provider_id.value,
                    profile=data.profile,
                    connected_at=data.connected_at,
                    expires_at=data.tokens.expires_at,
                )
            )
        return linked

    async def list_providers(self) -> list[ProviderStatus]:
        """Status of every supported provider, linked or not."""
        stored = await self.store.load()
        statuses = []
        for provider_id, adapter in self.adapters.items():
            data = stored.providers.get(provider_id)
            statuses.append(
                ProviderStatus(
                    id=provider_id,
                    name=adapter.display_name,
                    description=adapter.description,
                    connected=data is not None,
                    profile=data.profile if data else None,
                    expires_at=data.tokens.expires_at if data else None,
                    is_expired=adapter.is_expired(data.tokens) if data else False,
                )
            )
        return statuses
