# Common API response schemas.
# Created: 2026-02-21

from __future__ import annotations

from pydantic import ConfigDict

from agentage.storage.documents import CamelModel


class APIResponse(CamelModel):
    """Base response wrapper."""

    model_config = ConfigDict(from_attributes=True)


class StatusResponse(APIResponse):
    """Status string response."""

    status: str = "ok"
