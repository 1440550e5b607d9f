# Event bus — typed in-process pub/sub for push-style events.
# Created: 2026-02-21
#
# Publishers (chat controller, model registry, OAuth manager) never know who
# listens. The SSE events router and the registry's link-change hook subscribe
# by event type.

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

logger = logging.getLogger(__name__)

E = TypeVar("E")

Handler = Callable[[Any], Awaitable[None]]


@dataclass
class ChatEventPublished:
    """A chat stream event, pushed to UI surfaces as ``chat:event``."""

    request_id: str
    payload: dict[str, Any]

    topic = "chat:event"


@dataclass
class ModelsChanged:
    """The enabled model catalog changed, pushed as ``models:changed``."""

    models: list[dict[str, Any]] = field(default_factory=list)

    topic = "models:changed"


@dataclass
class ProviderLinkChanged:
    """An OAuth provider was linked or unlinked."""

    provider: str
    linked: bool

    topic = "oauth:changed"


@dataclass(frozen=True)
class Subscription:
    event_type: type
    handler: Handler


class EventBus:
    """Dispatch published events to handlers subscribed by type.

    Handlers run sequentially in subscription order. A failing handler is
    logged and skipped so one bad subscriber cannot break the publisher.
    """

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(
        self, event_type: type[E], handler: Callable[[E], Awaitable[None]]
    ) -> Subscription:
        sub = Subscription(event_type, handler)
        self._subscriptions.append(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        try:
            self._subscriptions.remove(sub)
        except ValueError:
            pass

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def publish(self, event: object) -> None:
        for sub in list(self._subscriptions):
            if not isinstance(event, sub.event_type):
                continue
            try:
                await sub.handler(event)
            except Exception:
                logger.warning(
                    "Event handler failed for %s", type(event).__name__, exc_info=True
                )
