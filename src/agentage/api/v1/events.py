# Events SSE router — push events via Server-Sent Events.
# Created: 2026-02-21
#
# Delivers chat:event (tagged with requestId), models:changed and
# oauth:changed to any number of listening surfaces.

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from agentage.api.deps import get_services
from agentage.bus import ChatEventPublished, ModelsChanged, ProviderLinkChanged
from agentage.services import AppServices

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Events"])

KEEPALIVE_SECONDS = 30.0


def _frame(event: object) -> tuple[str, dict]:
    if isinstance(event, ChatEventPublished):
        return event.topic, event.payload
    if isinstance(event, ModelsChanged):
        return event.topic, {"models": event.models}
    if isinstance(event, ProviderLinkChanged):
        return event.topic, {"provider": event.provider, "linked": event.linked}
    raise TypeError(f"Unexpected event {type(event).__name__}")


@router.get("/events/stream")
async def events_stream(services: AppServices = Depends(get_services)):
    """Subscribe to push events via SSE."""
    bus = services.bus
    queue: asyncio.Queue = asyncio.Queue()

    async def _on_event(event: object) -> None:
        await queue.put(event)

    subs = [
        bus.subscribe(ChatEventPublished, _on_event),
        bus.subscribe(ModelsChanged, _on_event),
        bus.subscribe(ProviderLinkChanged, _on_event),
    ]

    async def _event_generator():
        try:
            yield f"event: connected\ndata: {json.dumps({'status': 'ok'})}\n\n"
            while True:
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=KEEPALIVE_SECONDS)
                except TimeoutError:
                    yield ": keepalive\n\n"
                    continue
                topic, data = _frame(event)
                yield f"event: {topic}\ndata: {json.dumps(data)}\n\n"
        finally:
            for sub in subs:
                bus.unsubscribe(sub)

    return StreamingResponse(
        _event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
