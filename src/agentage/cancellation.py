"""
Cancellation token shared by a chat request and the tools it runs.

One token per in-flight request. The controller sets it on cancel; the tool
dispatcher races handlers against it and handlers may poll it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative, set-once cancellation signal.

    Usage:
        token = CancellationToken()

        # controller
        token.cancel("user requested")

        # worker
        token.check()  # raises CancelledError once cancelled
        await token.wait()  # resolves on cancellation
    """

    __slots__ = ("_callbacks", "_event", "_reason")

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []
        self._reason: str | None = None

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str | None = None) -> bool:
        """Signal cancellation. Returns False if it was already cancelled."""
        if self._event.is_set():
            return False
        self._reason = reason
        self._event.set()
        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            self._invoke(callback)
        return True

    def on_cancel(self, callback: Callable[[], None]) -> Callable[[], None]:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        if self._event.is_set():
            self._invoke(callback)
        else:
            self._callbacks.append(callback)
        return callback

    async def wait(self) -> None:
        await self._event.wait()

    def check(self) -> None:
        if self._event.is_set():
            raise asyncio.CancelledError(self._reason or "cancelled")

    def _invoke(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            logger.warning("Cancellation callback error: %s", e)
