# Chat router — configure, send (SSE), cancel, catalogs.
# Created: 2026-02-21
#
# POST /chat/send streams exactly one request's events and ends after its
# terminal event. Other surfaces can follow the same events on
# /events/stream as ``chat:event``.

from __future__ import annotations

import json
import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from agentage.api.deps import get_services
from agentage.api.v1.schemas.chat import (
    AgentInfoResponse,
    ChatCancelRequest,
    ChatCancelResponse,
    ChatSendBody,
    ToolInfoResponse,
    ToolToggleRequest,
)
from agentage.api.v1.schemas.common import StatusResponse
from agentage.catalog.models import ChatModelInfo
from agentage.chat.errors import DuplicateRequestError, SessionNotConfiguredError
from agentage.chat.schemas import ChatSendRequest, SessionConfig
from agentage.services import AppServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Chat"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/chat/configure", response_model=SessionConfig)
async def configure(body: SessionConfig, services: AppServices = Depends(get_services)):
    return await services.chat.configure_session(body)


@router.post("/chat/send")
async def send(body: ChatSendBody, services: AppServices = Depends(get_services)):
    """Start a request and stream its events back as SSE."""
    chat = services.chat
    request = ChatSendRequest(prompt=body.prompt, references=body.references)
    try:
        channel = await chat.send(request, request_id=body.request_id)
    except DuplicateRequestError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except SessionNotConfiguredError as e:
        raise HTTPException(status_code=400, detail=str(e))

    async def _event_generator():
        try:
            started = {"requestId": channel.request_id}
            yield f"event: started\ndata: {json.dumps(started)}\n\n"
            async for event in channel:
                yield f"event: {event.type}\ndata: {json.dumps(event.to_payload())}\n\n"
        finally:
            # Client went away mid-stream
            if not channel.closed:
                await chat.cancel_request(channel.request_id)

    return StreamingResponse(
        _event_generator(), media_type="text/event-stream", headers=_SSE_HEADERS
    )


@router.post("/chat/cancel", response_model=ChatCancelResponse)
async def cancel(body: ChatCancelRequest, services: AppServices = Depends(get_services)):
    """Cancel an in-flight request. Unknown or finished ids are not an error."""
    cancelled = await services.chat.cancel_request(body.request_id)
    return ChatCancelResponse(request_id=body.request_id, cancelled=cancelled)


@router.get("/chat/models", response_model=list[ChatModelInfo])
async def models(services: AppServices = Depends(get_services)):
    return await services.chat.get_models()


@router.get("/chat/tools", response_model=list[ToolInfoResponse])
async def tools(services: AppServices = Depends(get_services)):
    return [ToolInfoResponse.model_validate(t) for t in await services.chat.get_tools()]


@router.put("/chat/tools/{name}", response_model=list[str])
async def toggle_tool(
    name: str, body: ToolToggleRequest, services: AppServices = Depends(get_services)
):
    """Enable or disable a tool for sessions without an explicit tool list."""
    if not services.tools.has(name):
        raise HTTPException(status_code=404, detail=f"Unknown tool: {name}")
    settings = await services.tool_settings.set_enabled(name, body.enabled)
    return settings.enabled_tools


@router.get("/chat/agents", response_model=list[AgentInfoResponse])
async def agents(services: AppServices = Depends(get_services)):
    return [AgentInfoResponse.model_validate(a) for a in await services.chat.get_agents()]


@router.post("/chat/clear", response_model=StatusResponse)
async def clear(services: AppServices = Depends(get_services)):
    await services.chat.clear_history()
    return StatusResponse()
