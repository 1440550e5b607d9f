# Tests for oauth/manager.py
# Created: 2026-02-21

import asyncio

import pytest
from conftest import http_response

from agentage.bus import EventBus, ProviderLinkChanged
from agentage.oauth.base import AuthFailed, OAuthProvider, RefreshFailed, now_ms
from agentage.oauth.manager import OAuthManager
from agentage.oauth.models import (
    AuthorizationResult,
    OAuthProfile,
    OAuthProviderData,
    OAuthTokens,
    ProviderId,
)
from agentage.oauth.providers.openai import OpenAIOAuthProvider
from agentage.oauth.token_store import CredentialStore


class FakeAdapter(OAuthProvider):
    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"
    description = "fake"

    def __init__(self):
        self.authorize_error: Exception | None = None
        self.refresh_error: Exception | None = None
        self.refresh_calls = 0
        self.refresh_delay = 0.0

    async def authorize(self):
        if self.authorize_error:
            raise self.authorize_error
        return AuthorizationResult(
            tokens=OAuthTokens(
                access_token="acc", refresh_token="ref", expires_at=now_ms() + 3_600_000
            ),
            profile=OAuthProfile(id="u1", email="me@example.com"),
        )

    async def refresh_token(self, refresh_token):
        self.refresh_calls += 1
        await asyncio.sleep(self.refresh_delay)
        if self.refresh_error:
            raise self.refresh_error
        return OAuthTokens(
            access_token=f"fresh-{self.refresh_calls}",
            refresh_token=refresh_token,
            expires_at=now_ms() + 3_600_000,
        )

    async def fetch_profile(self, tokens):
        return OAuthProfile(id="u1")


@pytest.fixture
def adapter():
    return FakeAdapter()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def changes(bus):
    seen = []

    async def _on_change(event):
        seen.append((event.provider, event.linked))

    bus.subscribe(ProviderLinkChanged, _on_change)
    return seen


@pytest.fixture
def store(tmp_path):
    return CredentialStore(tmp_path)


@pytest.fixture
def manager(store, adapter, bus):
    return OAuthManager(store, {ProviderId.OPENAI: adapter}, bus=bus)


async def _store_expired(store, refresh_token="ref"):
    await store.save_provider(
        ProviderId.OPENAI,
        OAuthProviderData(
            tokens=OAuthTokens(
                access_token="old", refresh_token=refresh_token, expires_at=now_ms() - 1000
            ),
            profile=OAuthProfile(id="u1", email="me@example.com"),
            connected_at=123,
        ),
    )


class TestLinkUnlink:
    async def test_link_success(self, manager, store, changes):
        result = await manager.link_provider(ProviderId.OPENAI)
        assert result.success
        assert result.profile.email == "me@example.com"
        stored = await store.get_provider(ProviderId.OPENAI)
        assert stored.tokens.access_token == "acc"
        assert stored.connected_at > 0
        assert changes == [("openai", True)]

    async def test_link_failure_leaves_store_untouched(self, manager, adapter, store, changes):
        adapter.authorize_error = AuthFailed("Authorization timed out")
        result = await manager.link_provider(ProviderId.OPENAI)
        assert not result.success
        assert result.error == "Authorization timed out"
        assert await store.get_provider(ProviderId.OPENAI) is None
        assert changes == []

    async def test_unlink_is_idempotent(self, manager, changes):
        await manager.link_provider(ProviderId.OPENAI)
        assert (await manager.unlink_provider(ProviderId.OPENAI)).success
        assert (await manager.unlink_provider(ProviderId.OPENAI)).success
        assert await manager.get_linked_providers() == []
        assert changes == [("openai", True), ("openai", False)]

    async def test_unsupported_provider(self, manager):
        with pytest.raises(ValueError, match="Unsupported"):
            await manager.unlink_provider(ProviderId.ANTHROPIC)


class TestRefresh:
    async def test_unlinked_returns_none(self, manager):
        assert await manager.refresh_token_if_needed(ProviderId.OPENAI) is None

    async def test_fresh_token_returned_as_is(self, manager, adapter):
        await manager.link_provider(ProviderId.OPENAI)
        tokens = await manager.refresh_token_if_needed(ProviderId.OPENAI)
        assert tokens.access_token == "acc"
        assert adapter.refresh_calls == 0

    async def test_expired_token_is_refreshed_and_stored(self, manager, store):
        await _store_expired(store)
        tokens = await manager.refresh_token_if_needed(ProviderId.OPENAI)
        assert tokens.access_token == "fresh-1"
        stored = await store.get_provider(ProviderId.OPENAI)
        assert stored.tokens.access_token == "fresh-1"
        assert stored.connected_at == 123
        assert stored.profile.email == "me@example.com"

    async def test_refresh_failure_unlinks(self, manager, adapter, store, changes):
        await _store_expired(store)
        adapter.refresh_error = RefreshFailed("invalid_grant")
        assert await manager.refresh_token_if_needed(ProviderId.OPENAI) is None
        assert await store.get_provider(ProviderId.OPENAI) is None
        assert changes == [("openai", False)]

    async def test_non_object_refresh_response_unlinks(self, store, bus, changes, http_client):
        manager = OAuthManager(store, {ProviderId.OPENAI: OpenAIOAuthProvider()}, bus=bus)
        await _store_expired(store)
        http_client.post.return_value = http_response(200, ["access_token", "fresh"])
        assert await manager.refresh_token_if_needed(ProviderId.OPENAI) is None
        assert await store.get_provider(ProviderId.OPENAI) is None
        assert changes == [("openai", False)]

    async def test_expired_without_refresh_token_unlinks(self, manager, adapter, store):
        await _store_expired(store, refresh_token=None)
        assert await manager.get_access_token(ProviderId.OPENAI) is None
        assert adapter.refresh_calls == 0
        assert await store.get_provider(ProviderId.OPENAI) is None

    async def test_concurrent_refreshes_coalesce(self, manager, adapter, store):
        await _store_expired(store)
        adapter.refresh_delay = 0.05
        tokens = await asyncio.gather(
            *(manager.get_access_token(ProviderId.OPENAI) for _ in range(3))
        )
        assert adapter.refresh_calls == 1
        assert tokens == ["fresh-1"] * 3


class TestListings:
    async def test_linked_providers_carry_no_tokens(self, manager):
        await manager.link_provider(ProviderId.OPENAI)
        linked = await manager.get_linked_providers()
        assert [p.id for p in linked] == [ProviderId.OPENAI]
        dumped = linked[0].model_dump_json(by_alias=True)
        assert "accessToken" not in dumped
        assert "refreshToken" not in dumped
        assert linked[0].expires_at is not None

    async def test_list_providers_reports_status(self, manager, store):
        statuses = await manager.list_providers()
        assert len(statuses) == 1
        assert not statuses[0].connected

        await _store_expired(store)
        (status,) = await manager.list_providers()
        assert status.connected
        assert status.is_expired
        assert status.profile.id == "u1"
