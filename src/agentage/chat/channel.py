# Request channel — ordered per-request event stream with a single terminal.
# Created: 2026-02-21

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from agentage.chat.events import _ChatEventBase, is_terminal

logger = logging.getLogger(__name__)

EventSink = Callable[[_ChatEventBase], Awaitable[None]]


class RequestChannel:
    """Async iterator over one request's events.

    Every accepted event is queued for the iterator and forwarded to the
    sink, in acceptance order. The first terminal event closes the channel;
    anything emitted afterwards is refused, which is what guarantees one
    terminal event per request even when cancel races completion.
    """

    def __init__(self, request_id: str, sink: EventSink | None = None):
        self.request_id = request_id
        self._sink = sink
        self._queue: asyncio.Queue[_ChatEventBase] = asyncio.Queue()
        self._sink_lock = asyncio.Lock()
        self._terminal: _ChatEventBase | None = None
        self._drained = False

    @property
    def closed(self) -> bool:
        return self._terminal is not None

    @property
    def terminal(self) -> _ChatEventBase | None:
        return self._terminal

    async def emit(self, event: _ChatEventBase) -> bool:
        """Accept *event* unless the channel is closed. Returns acceptance."""
        if self._terminal is not None:
            return False
        if is_terminal(event):
            self._terminal = event
        self._queue.put_nowait(event)
        if self._sink is not None:
            async with self._sink_lock:
                try:
                    await self._sink(event)
                except Exception:
                    logger.warning("Chat event sink failed for %s", self.request_id, exc_info=True)
        return True

    def __aiter__(self) -> RequestChannel:
        return self

    async def __anext__(self) -> _ChatEventBase:
        if self._drained:
            raise StopAsyncIteration
        event = await self._queue.get()
        if is_terminal(event):
            self._drained = True
        return event

    async def collect(self) -> list[_ChatEventBase]:
        return [event async for event in self]
