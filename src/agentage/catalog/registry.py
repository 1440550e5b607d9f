# Model Provider Registry — models.json, token resolution and the enabled
# model catalog.
# Created: 2026-02-21

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

from agentage.bus import EventBus, ModelsChanged, ProviderLinkChanged
from agentage.catalog.models import (
    ChatModelInfo,
    LoadProvidersResult,
    ModelInfo,
    ModelProviderConfig,
    ModelsConfig,
    SaveProviderRequest,
    SaveProviderResult,
    ValidateTokenResponse,
    oauth_source,
)
from agentage.catalog.validation import context_window, validate_token
from agentage.oauth.manager import OAuthManager
from agentage.oauth.models import ProviderId
from agentage.storage.documents import JsonDocument

logger = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


def merge_models(fresh: list[ModelInfo], previous: list[ModelInfo]) -> list[ModelInfo]:
    """Take the fresh model list, keeping the user's enabled/default flags."""
    known = {m.id: m for m in previous}
    merged = []
    for model in fresh:
        old = known.get(model.id)
        if old is not None:
            model = model.model_copy(update={"enabled": old.enabled, "is_default": old.is_default})
        merged.append(model)
    return merged


class ModelProviderRegistry:
    """Configured model providers and their model lists.

    Manual providers keep their API key in models.json. OAuth-backed providers
    never store a token; it is resolved through the OAuth manager (which
    refreshes it when needed) on every use.
    """

    FILENAME = "models.json"

    def __init__(
        self,
        config_dir: Path,
        oauth: OAuthManager,
        bus: EventBus | None = None,
        staleness_hours: float = 24.0,
    ):
        self.document = JsonDocument(config_dir / self.FILENAME, ModelsConfig, private=True)
        self.oauth = oauth
        self.bus = bus
        self.staleness = timedelta(hours=staleness_hours)
        if bus is not None:
            bus.subscribe(ProviderLinkChanged, self.on_link_changed)

    # -- queries --

    async def validate_token(self, provider: ProviderId, token: str) -> ValidateTokenResponse:
        return await validate_token(provider, token)

    async def resolve_token(self, provider: ProviderId) -> str | None:
        config = await self.document.load()
        entry = config.get(provider)
        if entry is None:
            return None
        return await self._token_for(entry)

    async def enabled_models(self, config: ModelsConfig | None = None) -> list[ChatModelInfo]:
        if config is None:
            config = await self.document.load()
        return [
            ChatModelInfo(
                id=model.id,
                name=model.display_name,
                provider=entry.provider,
                context_window=context_window(model.id),
            )
            for entry in config.providers
            if entry.enabled
            for model in entry.models
            if model.enabled
        ]

    async def provider_for_model(self, model_id: str) -> ProviderId:
        config = await self.document.load()
        for entry in config.providers:
            if any(m.id == model_id for m in entry.models):
                return entry.provider
        return ProviderId.ANTHROPIC if model_id.startswith("claude") else ProviderId.OPENAI

    # -- load / save --

    async def load_providers(self, auto_refresh: bool = False) -> LoadProvidersResult:
        """Return configured providers, picking up new OAuth links.

        With *auto_refresh*, providers whose model list is older than the
        staleness threshold are re-fetched. A failed re-fetch keeps the old
        list.
        """
        config = await self.document.load()

        detected: dict[ProviderId, ModelProviderConfig] = {}
        for linked in await self.oauth.get_linked_providers():
            existing = config.get(linked.id)
            if existing is not None and existing.source != "manual":
                continue
            token = await self.oauth.get_access_token(linked.id)
            if not token:
                continue
            result = await validate_token(linked.id, token)
            previous = existing.models if existing else []
            models = previous
            if result.valid and result.models:
                models = merge_models(result.models, previous)
            detected[linked.id] = ModelProviderConfig(
                provider=linked.id,
                source=oauth_source(linked.id),
                enabled=True,
                last_fetched_at=_now_iso(),
                models=models,
            )
            logger.info("Detected OAuth link for %s; using it as model source", linked.id.value)

        refreshed: dict[ProviderId, list[ModelInfo]] = {}
        if auto_refresh:
            for entry in config.providers:
                if entry.provider in detected or not self._is_stale(entry.last_fetched_at):
                    continue
                token = await self._token_for(entry)
                if not token:
                    continue
                result = await validate_token(entry.provider, token)
                if result.valid and result.models:
                    refreshed[entry.provider] = merge_models(result.models, entry.models)
                else:
                    logger.info(
                        "Keeping cached models for %s (%s)",
                        entry.provider.value,
                        result.error or "no models",
                    )

        if not detected and not refreshed:
            return LoadProvidersResult(providers=config.providers)

        async with self.document.transaction() as current:
            for entry in detected.values():
                current.upsert(entry)
            for provider, models in refreshed.items():
                entry = current.get(provider)
                if entry is not None:
                    entry.models = models
                    entry.last_fetched_at = _now_iso()
        await self._publish(current)
        return LoadProvidersResult(providers=current.providers)

    async def save_provider(self, request: SaveProviderRequest) -> SaveProviderResult:
        """Validate credentials, fetch models and persist one provider."""
        if request.source == "manual":
            if not request.token:
                return SaveProviderResult(success=False, error="Token is required")
            token = request.token
        else:
            oauth_id = ProviderId(request.source.split(":", 1)[1])
            if oauth_id != request.provider:
                return SaveProviderResult(
                    success=False, error="OAuth source does not match provider"
                )
            token = await self.oauth.get_access_token(oauth_id)
            if not token:
                return SaveProviderResult(success=False, error="Provider is not linked")

        result = await validate_token(request.provider, token)
        if not result.valid:
            if result.error == "invalid_token":
                return SaveProviderResult(success=False, error="Invalid API token")
            return SaveProviderResult(success=False, error="Could not reach provider")

        async with self.document.transaction() as config:
            existing = config.get(request.provider)
            if request.models is not None:
                previous = request.models
            else:
                previous = existing.models if existing else []
            config.upsert(
                ModelProviderConfig(
                    provider=request.provider,
                    source=request.source,
                    token=request.token if request.source == "manual" else None,
                    enabled=request.enabled,
                    last_fetched_at=_now_iso(),
                    models=merge_models(result.models or [], previous),
                )
            )
        logger.info("Saved %s provider (%s)", request.provider.value, request.source)
        models = await self._publish(config)
        return SaveProviderResult(success=True, providers=config.providers, models=models)

    async def set_model_enabled(
        self, provider: ProviderId, model_id: str, enabled: bool
    ) -> ModelInfo | None:
        """Flip a model's enabled flag. Returns None for an unknown model."""
        async with self.document.transaction() as config:
            entry = config.get(provider)
            model = next((m for m in entry.models if m.id == model_id), None) if entry else None
            if model is not None:
                model.enabled = enabled
        if model is not None:
            await self._publish(config)
        return model

    async def on_link_changed(self, event: ProviderLinkChanged) -> None:
        """Drop the OAuth-sourced provider entry when its link goes away."""
        if event.linked:
            return
        provider = ProviderId(event.provider)
        source = oauth_source(provider)
        async with self.document.transaction() as config:
            before = len(config.providers)
            config.providers = [p for p in config.providers if p.source != source]
            changed = len(config.providers) != before
        if changed:
            logger.info("Cleared OAuth model source for %s", provider.value)
            await self._publish(config)

    # -- internals --

    async def _token_for(self, entry: ModelProviderConfig) -> str | None:
        oauth_id = entry.oauth_provider
        if oauth_id is None:
            return entry.token
        return await self.oauth.get_access_token(oauth_id)

    def _is_stale(self, last_fetched_at: str | None) -> bool:
        if not last_fetched_at:
            return True
        try:
            fetched = datetime.fromisoformat(last_fetched_at.replace("Z", "+00:00"))
        except ValueError:
            return True
        if fetched.tzinfo is None:
            fetched = fetched.replace(tzinfo=UTC)
        return datetime.now(UTC) - fetched > self.staleness

    async def _publish(self, config: ModelsConfig) -> list[ChatModelInfo]:
        models = await self.enabled_models(config)
        if self.bus is not None:
            await self.bus.publish(
                ModelsChanged(models=[m.model_dump(by_alias=True, mode="json") for m in models])
            )
        return models
