# Tests for tools/dispatcher.py and tools/protocol.py
# Created: 2026-02-21

import asyncio
from typing import Any

import pytest

from agentage.cancellation import CancellationToken
from agentage.tools.dispatcher import ToolDispatcher
from agentage.tools.protocol import BaseTool, ToolContext, ToolError, ToolResult
from agentage.tools.registry import ToolRegistry


class EchoTool(BaseTool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo text back"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        }

    async def execute(self, context: ToolContext, text: str) -> dict[str, Any]:
        return {"echo": text, "request": context.request_id}


class FailingTool(EchoTool):
    @property
    def name(self) -> str:
        return "fail"

    async def execute(self, context: ToolContext, text: str = "") -> Any:
        raise ToolError("boom")


class SlowTool(EchoTool):
    def __init__(self):
        self.cancelled = False

    @property
    def name(self) -> str:
        return "slow"

    async def execute(self, context: ToolContext, text: str = "") -> Any:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return "done"


class StubbornTool(EchoTool):
    @property
    def name(self) -> str:
        return "stubborn"

    async def execute(self, context: ToolContext, text: str = "") -> Any:
        try:
            await asyncio.sleep(10)
        except asyncio.CancelledError:
            pass  # ignores cancellation
        await asyncio.sleep(0.3)
        return "finally"


@pytest.fixture
def registry():
    reg = ToolRegistry()
    for tool in (EchoTool(), FailingTool(), SlowTool(), StubbornTool()):
        reg.register(tool)
    return reg


@pytest.fixture
def dispatcher(registry):
    return ToolDispatcher(registry, timeout=5, abort_grace=0.05)


class TestDispatcher:
    async def test_success(self, dispatcher):
        result = await dispatcher.execute(
            "call-1", "echo", {"text": "hi"}, ToolContext(request_id="r1")
        )
        assert result == ToolResult(
            id="call-1", name="echo", success=True, data={"echo": "hi", "request": "r1"}
        )

    async def test_unknown_tool(self, dispatcher):
        result = await dispatcher.execute("c", "nope", {}, ToolContext())
        assert not result.success
        assert result.error == "Unknown tool: nope"

    async def test_handler_error_becomes_result(self, dispatcher):
        result = await dispatcher.execute("c", "fail", {}, ToolContext())
        assert (result.success, result.error) == (False, "boom")

    async def test_bad_arguments(self, dispatcher):
        result = await dispatcher.execute("c", "echo", {"wrong": 1}, ToolContext())
        assert not result.success
        assert result.error.startswith("Invalid input")

    async def test_timeout(self, registry):
        slow = registry.get("slow")
        dispatcher = ToolDispatcher(registry, timeout=0.05, abort_grace=1)
        result = await dispatcher.execute("c", "slow", {}, ToolContext())
        assert result.error == "Timed out after 0.05s"
        assert slow.cancelled

    async def test_cancellation_aborts_promptly(self, dispatcher, registry):
        token = CancellationToken()
        context = ToolContext(request_id="r", cancellation=token)
        task = asyncio.create_task(dispatcher.execute("c", "slow", {}, context))
        await asyncio.sleep(0.01)
        token.cancel("user")
        result = await asyncio.wait_for(task, timeout=1)
        assert (result.success, result.error) == (False, "Cancelled")
        assert registry.get("slow").cancelled

    async def test_already_cancelled(self, dispatcher):
        token = CancellationToken()
        token.cancel()
        result = await dispatcher.execute(
            "c", "echo", {"text": "x"}, ToolContext(cancellation=token)
        )
        assert result.error == "Cancelled"

    async def test_handler_ignoring_cancel_is_abandoned(self, dispatcher):
        token = CancellationToken()
        context = ToolContext(cancellation=token)
        task = asyncio.create_task(dispatcher.execute("c", "stubborn", {}, context))
        await asyncio.sleep(0.01)
        token.cancel()
        result = await asyncio.wait_for(task, timeout=1)
        assert result.error == "Cancelled"


class TestToolResult:
    def test_model_text_for_data(self):
        result = ToolResult(id="c", name="x", success=True, data={"a": 1})
        assert '"a": 1' in result.to_model_text()

    def test_model_text_for_error(self):
        result = ToolResult(id="c", name="x", success=False, error="nope")
        assert result.to_model_text() == "Error: nope"

    def test_model_text_truncation(self):
        result = ToolResult(id="c", name="x", success=True, data="y" * 50)
        text = result.to_model_text(limit=10)
        assert text.startswith("y" * 10)
        assert text.endswith("[Output truncated...]")


class TestCancellationToken:
    async def test_cancel_once(self):
        token = CancellationToken()
        fired = []
        token.on_cancel(lambda: fired.append(1))
        assert token.cancel("first")
        assert not token.cancel("second")
        assert token.reason == "first"
        assert fired == [1]

    async def test_check_raises(self):
        token = CancellationToken()
        token.check()
        token.cancel()
        with pytest.raises(asyncio.CancelledError):
            token.check()

    async def test_on_cancel_after_cancel_runs_immediately(self):
        token = CancellationToken()
        token.cancel()
        fired = []
        token.on_cancel(lambda: fired.append(1))
        assert fired == [1]
