# Conversations router — list, get, delete stored conversations.
# Created: 2026-02-21
#
# A conversation is resumed by passing its id to POST /chat/configure.

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from agentage.api.deps import get_services
from agentage.api.v1.schemas.common import StatusResponse
from agentage.api.v1.schemas.conversations import ConversationListResponse
from agentage.services import AppServices
from agentage.storage.conversations import ConversationSnapshot

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Conversations"])


@router.get("/conversations", response_model=ConversationListResponse)
async def list_conversations(
    limit: int = Query(50, ge=1, le=500), services: AppServices = Depends(get_services)
):
    summaries = await services.conversations.list_conversations()
    return ConversationListResponse(conversations=summaries[:limit], total=len(summaries))


@router.get("/conversations/{conversation_id}", response_model=ConversationSnapshot)
async def get_conversation(conversation_id: str, services: AppServices = Depends(get_services)):
    snapshot = await services.conversations.get(conversation_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return snapshot


@router.delete("/conversations/{conversation_id}", response_model=StatusResponse)
async def delete_conversation(conversation_id: str, services: AppServices = Depends(get_services)):
    """Delete a conversation. The active session keeps its id with an empty history."""
    if not await services.chat.delete_conversation(conversation_id):
        raise HTTPException(status_code=404, detail="Conversation not found")
    return StatusResponse()
