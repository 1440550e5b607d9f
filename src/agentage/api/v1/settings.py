# Settings router — GET/PUT settings.json.
# Created: 2026-02-21

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import ValidationError

from agentage.api.deps import get_services
from agentage.api.v1.schemas.settings import SettingsUpdateRequest
from agentage.services import AppServices
from agentage.storage.app_settings import AppSettings

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Settings"])


@router.get("/settings", response_model=AppSettings)
async def get_settings(services: AppServices = Depends(get_services)):
    return await services.app_settings.get()


@router.put("/settings", response_model=AppSettings)
async def update_settings(
    body: SettingsUpdateRequest, services: AppServices = Depends(get_services)
):
    """Update settings fields. Only provided fields are changed."""
    changes = body.model_dump(exclude_unset=True)
    try:
        return await services.app_settings.update(**changes)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
