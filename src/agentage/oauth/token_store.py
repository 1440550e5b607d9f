# Credential Store — owner-only oauth.json holding every provider link.
# Created: 2026-02-21

from __future__ import annotations

import logging
from pathlib import Path

from agentage.oauth.models import OAuthProviderData, OAuthStorageData, ProviderId
from agentage.storage.documents import JsonDocument

logger = logging.getLogger(__name__)


class CredentialStore:
    """File-backed store at ``<config_dir>/oauth.json``.

    The file is chmod 0600 and is written atomically. A corrupt or
    schema-invalid file reads as "nothing linked". Per-provider updates are
    serialized so concurrent saves for different providers never lose each
    other's entries.
    """

    FILENAME = "oauth.json"

    def __init__(self, config_dir: Path):
        self.document = JsonDocument(
            config_dir / self.FILENAME, OAuthStorageData, private=True
        )

    @property
    def path(self) -> Path:
        return self.document.path

    async def load(self) -> OAuthStorageData:
        return await self.document.load()

    async def save(self, data: OAuthStorageData) -> None:
        await self.document.save(data)

    async def save_provider(self, provider_id: ProviderId, data: OAuthProviderData) -> None:
        async with self.document.transaction() as stored:
            stored.providers[provider_id] = data
        logger.info("Saved OAuth link for %s", provider_id.value)

    async def remove_provider(self, provider_id: ProviderId) -> None:
        """Drop the provider's entry. Removing an absent provider is a no-op."""
        async with self.document.transaction() as stored:
            removed = stored.providers.pop(provider_id, None)
        if removed is not None:
            logger.info("Removed OAuth link for %s", provider_id.value)

    async def get_provider(self, provider_id: ProviderId) -> OAuthProviderData | None:
        stored = await self.document.load()
        return stored.providers.get(provider_id)
