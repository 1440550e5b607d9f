"""Process-wide singleton teardown.

The service container registers here when it is first built. The API
lifespan calls ``shutdown_all()`` so in-flight chat requests are cancelled
before the loop closes; the test suite calls ``reset_all()`` after every case
so each test builds its own container.

Created: 2026-02-21
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT = 10.0


@dataclass(frozen=True)
class _Hooks:
    shutdown: Callable[[], Any] | None
    reset: Callable[[], Any] | None
    timeout: float


_hooks: dict[str, _Hooks] = {}


def register(
    name: str,
    *,
    shutdown: Callable[[], Any] | None = None,
    reset: Callable[[], Any] | None = None,
    timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
) -> None:
    """Register hooks for the singleton *name*, replacing earlier ones.

    Args:
        name: Unique identifier, e.g. ``"services"``.
        shutdown: Sync or async callable run by ``shutdown_all()``.
        reset: Sync callable that drops the cached instance.
        timeout: Seconds an async shutdown hook may take before it is abandoned.
    """
    _hooks.pop(name, None)
    _hooks[name] = _Hooks(shutdown, reset, timeout)


def unregister(name: str) -> None:
    _hooks.pop(name, None)


def registered() -> list[str]:
    return list(_hooks)


async def shutdown_all() -> None:
    """Run every shutdown hook, most recent registration first.

    A hook that fails or overruns its timeout is logged; the rest still run.
    """
    for name, hooks in reversed(list(_hooks.items())):
        if hooks.shutdown is None:
            continue
        try:
            result = hooks.shutdown()
            if asyncio.iscoroutine(result):
                await asyncio.wait_for(result, timeout=hooks.timeout)
        except TimeoutError:
            logger.warning("Shutdown of %s timed out after %gs", name, hooks.timeout)
        except Exception:
            logger.warning("Error shutting down %s", name, exc_info=True)
        else:
            logger.debug("Shut down %s", name)


def reset_all() -> None:
    """Drop every cached singleton and forget all registrations."""
    for name, hooks in list(_hooks.items()):
        if hooks.reset is None:
            continue
        try:
            hooks.reset()
        except Exception:
            logger.warning("Error resetting %s", name, exc_info=True)
    _hooks.clear()
