# Models router — configured providers, token validation, model toggles.
# Created: 2026-02-21

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from agentage.api.deps import get_services, provider_id
from agentage.api.v1.schemas.models import (
    ModelToggleRequest,
    ProvidersResponse,
    ProviderView,
    SaveProviderResponse,
)
from agentage.catalog.models import (
    ModelInfo,
    SaveProviderRequest,
    ValidateTokenRequest,
    ValidateTokenResponse,
)
from agentage.oauth.models import ProviderId
from agentage.services import AppServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Models"])


@router.get("/models/providers", response_model=ProvidersResponse)
async def load_providers(
    auto_refresh: bool = Query(default=False, alias="autoRefresh"),
    services: AppServices = Depends(get_services),
):
    """Configured providers; picks up OAuth links and optionally refreshes stale lists."""
    result = await services.models.load_providers(auto_refresh=auto_refresh)
    return ProvidersResponse(providers=[ProviderView.from_config(p) for p in result.providers])


@router.post("/models/providers", response_model=SaveProviderResponse)
async def save_provider(body: SaveProviderRequest, services: AppServices = Depends(get_services)):
    result = await services.models.save_provider(body)
    providers = None
    if result.providers is not None:
        providers = [ProviderView.from_config(p) for p in result.providers]
    return SaveProviderResponse(
        success=result.success, providers=providers, models=result.models, error=result.error
    )


@router.patch("/models/providers/{provider}/models/{model_id}", response_model=ModelInfo)
async def toggle_model(
    model_id: str,
    body: ModelToggleRequest,
    provider: ProviderId = Depends(provider_id),
    services: AppServices = Depends(get_services),
):
    model = await services.models.set_model_enabled(provider, model_id, body.enabled)
    if model is None:
        raise HTTPException(status_code=404, detail=f"Unknown model: {model_id}")
    return model


@router.post("/models/validate", response_model=ValidateTokenResponse)
async def validate(body: ValidateTokenRequest, services: AppServices = Depends(get_services)):
    """Check a token against the provider and list its models. Nothing is stored."""
    return await services.models.validate_token(body.provider, body.token)
