# Shared FastAPI dependencies for the API layer.
# Created: 2026-02-21

from __future__ import annotations

from fastapi import HTTPException

from agentage.oauth.models import ProviderId
from agentage.services import AppServices
from agentage.services import get_services as _get_services


def get_services() -> AppServices:
    """FastAPI dependency returning the service container.

    Tests swap the container with ``app.dependency_overrides[get_services]``.
    """
    return _get_services()


def provider_id(provider: str) -> ProviderId:
    """Path parameter → ``ProviderId``; unknown providers are a 404."""
    try:
        return ProviderId(provider)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown provider: {provider}")
