# Tool dispatcher — runs one tool call under the request's cancellation.
# Created: 2026-02-21

from __future__ import annotations

import asyncio
import logging
from typing import Any

from agentage.tools.protocol import ToolContext, ToolResult
from agentage.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Resolve a call against the merged catalog and execute it.

    The handler runs in its own task, raced against the request's
    cancellation token and a per-call timeout. On abort the handler task is
    cancelled and given ``abort_grace`` seconds to stop; a handler that
    ignores it is abandoned so the caller is never blocked.
    """

    def __init__(self, registry: ToolRegistry, timeout: float = 120.0, abort_grace: float = 5.0):
        self.registry = registry
        self.timeout = timeout
        self.abort_grace = abort_grace

    async def execute(
        self, call_id: str, name: str, params: dict[str, Any], context: ToolContext
    ) -> ToolResult:
        tool = self.registry.get(name)
        if tool is None:
            return ToolResult(id=call_id, name=name, success=False, error=f"Unknown tool: {name}")
        if context.cancelled:
            return ToolResult(id=call_id, name=name, success=False, error="Cancelled")

        try:
            coro = tool.execute(context, **params)
        except TypeError as e:
            return ToolResult(id=call_id, name=name, success=False, error=f"Invalid input: {e}")

        logger.info("🔧 Running tool %s (%s)", name, call_id)
        task = asyncio.create_task(coro, name=f"tool:{name}:{call_id}")
        waiters: set[asyncio.Task] = {task}
        cancel_wait = None
        if context.cancellation is not None:
            cancel_wait = asyncio.create_task(context.cancellation.wait())
            waiters.add(cancel_wait)

        try:
            done, _ = await asyncio.wait(
                waiters, timeout=self.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            await self._stop(task)
            raise
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        if task not in done:
            await self._stop(task)
            if context.cancelled:
                error = "Cancelled"
            else:
                error = f"Timed out after {self.timeout:g}s"
            logger.warning("🔧 Tool %s aborted: %s", name, error)
            return ToolResult(id=call_id, name=name, success=False, error=error)

        try:
            data = task.result()
        except asyncio.CancelledError:
            return ToolResult(id=call_id, name=name, success=False, error="Cancelled")
        except Exception as e:
            logger.warning("🔧 Tool %s failed: %s", name, e)
            return ToolResult(
                id=call_id, name=name, success=False, error=str(e) or type(e).__name__
            )
        return ToolResult(id=call_id, name=name, success=True, data=data)

    async def _stop(self, task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=self.abort_grace)
        if not done:
            logger.warning("🔧 %s ignored cancellation; abandoning it", task.get_name())
