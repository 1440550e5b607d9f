# Auth router — account login and OAuth provider links.
# Created: 2026-02-21

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from agentage.account import AuthResult
from agentage.api.deps import get_services, provider_id
from agentage.api.v1.schemas.common import StatusResponse
from agentage.oauth.models import (
    LinkedProvider,
    LinkResult,
    ProviderId,
    ProviderStatus,
    UnlinkResult,
)
from agentage.services import AppServices
from agentage.storage.app_settings import AccountUser

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Auth"])


@router.post("/auth/login", response_model=AuthResult)
async def login(services: AppServices = Depends(get_services)):
    """Open the browser login and wait for the loopback callback."""
    return await services.account.login()


@router.post("/auth/logout", response_model=StatusResponse)
async def logout(services: AppServices = Depends(get_services)):
    await services.account.logout()
    return StatusResponse()


@router.get("/auth/user", response_model=AccountUser | None)
async def get_user(services: AppServices = Depends(get_services)):
    """Signed-in user, or null when signed out or the session expired."""
    return await services.account.get_user()


@router.post("/auth/providers/{provider}/link", response_model=LinkResult)
async def link_provider(
    provider: ProviderId = Depends(provider_id),
    services: AppServices = Depends(get_services),
):
    return await services.oauth.link_provider(provider)


@router.post("/auth/providers/{provider}/unlink", response_model=UnlinkResult)
async def unlink_provider(
    provider: ProviderId = Depends(provider_id),
    services: AppServices = Depends(get_services),
):
    return await services.oauth.unlink_provider(provider)


@router.get("/auth/providers", response_model=list[LinkedProvider])
async def linked_providers(services: AppServices = Depends(get_services)):
    return await services.oauth.get_linked_providers()


@router.get("/oauth/providers", response_model=list[ProviderStatus])
async def oauth_providers(services: AppServices = Depends(get_services)):
    """Every supported provider with its link status."""
    return await services.oauth.list_providers()
