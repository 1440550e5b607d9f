# Tests for chat/controller.py
# Created: 2026-02-21

import asyncio
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from agentage.agents import AgentCatalog
from agentage.chat.controller import ChatSessionController
from agentage.chat.errors import DuplicateRequestError, SessionNotConfiguredError
from agentage.chat.schemas import ChatReference, ChatSendRequest, ModelOptions, SessionConfig
from agentage.llm.client import CredentialsMissing, LLMClient
from agentage.llm.protocol import Message, TextChunk, ThinkingChunk, ToolCall, TurnComplete
from agentage.oauth.models import ProviderId
from agentage.storage.app_settings import SettingsStore
from agentage.storage.conversations import ConversationStore
from agentage.tools.dispatcher import ToolDispatcher
from agentage.tools.protocol import BaseTool, ToolContext
from agentage.tools.registry import ToolRegistry
from agentage.tools.settings import ToolSettingsStore
from conftest import WAIT, FakeTransport


class EchoTool(BaseTool):
    @property
    def name(self) -> str:
        return "echo"

    @property
    def description(self) -> str:
        return "Echo text back"

    @property
    def parameters(self) -> dict[str, Any]:
        return {"type": "object", "properties": {"text": {"type": "string"}}}

    async def execute(self, context: ToolContext, text: str = "") -> dict[str, Any]:
        return {"echo": text, "workspace": context.workspace_path}


def _done(text="", **kwargs):
    return TurnComplete(stop_reason="end_turn", text=text, **kwargs)


def _tool_use(*calls, text=""):
    return TurnComplete(stop_reason="tool_use", text=text, tool_calls=list(calls))


def _types(events):
    return [e.type for e in events]


@pytest.fixture
def sink_events():
    return []


@pytest.fixture
def build(tmp_path, sink_events):
    tools = ToolRegistry()
    tools.register(EchoTool())

    registry = MagicMock()
    registry.enabled_models = AsyncMock(return_value=[])

    async def _sink(event):
        sink_events.append(event)

    async def _build(transport, resolver=None, **kwargs):
        async def _resolve(registry, model):
            return LLMClient(provider=ProviderId.ANTHROPIC, model=model, token="sk-ant-api-1")

        controller = ChatSessionController(
            registry,
            tools,
            ToolDispatcher(tools, timeout=5, abort_grace=0.1),
            ToolSettingsStore(tmp_path),
            AgentCatalog(tmp_path / "agents"),
            SettingsStore(tmp_path),
            sink=_sink,
            client_resolver=resolver or _resolve,
            transport_factory=lambda client: transport,
            **kwargs,
        )
        await controller.configure_session(SessionConfig(model="claude-sonnet-4", tools=("echo",)))
        return controller

    return _build


def _prompt(text="Hello"):
    return ChatSendRequest(prompt=text)


class TestSend:
    async def test_text_turn(self, build, sink_events):
        transport = FakeTransport(
            [
                ThinkingChunk("hmm"),
                TextChunk("Hel"),
                TextChunk("lo"),
                _done("Hello", input_tokens=10, output_tokens=2),
            ]
        )
        controller = await build(transport)
        channel = await controller.send(_prompt(), request_id="r1")
        events = await channel.collect()

        assert _types(events) == ["thinking", "text-delta", "text-delta", "done"]
        assert all(e.request_id == "r1" for e in events)
        assert events[-1].input_tokens == 10
        assert events[-1].output_tokens == 2
        assert sink_events == events

        history = controller.history()
        assert [(m.role, m.content) for m in history] == [("user", "Hello"), ("assistant", "Hello")]
        await asyncio.sleep(0.01)
        assert controller.active_request_ids == []

    async def test_tool_round_trip(self, build, tmp_path):
        await SettingsStore(tmp_path).update(active_workspace=str(tmp_path))
        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "echo", {"text": "ping"}), text="Let me check")],
            [TextChunk("pong"), _done("pong", input_tokens=5, output_tokens=1)],
        )
        controller = await build(transport)
        events = await (await controller.send(_prompt())).collect()

        assert _types(events) == ["tool-call", "tool-result", "text-delta", "done"]
        call, result = events[0], events[1]
        assert (call.id, call.name, call.input) == ("c1", "echo", {"text": "ping"})
        assert result.success
        assert result.output == {"echo": "ping", "workspace": str(tmp_path)}

        second = transport.requests[1]
        assert [m.role for m in second.messages] == ["user", "assistant", "user"]
        assert second.messages[1].tool_calls[0].id == "c1"
        block = second.messages[2].tool_results[0]
        assert block.tool_call_id == "c1"
        assert '"echo": "ping"' in block.content
        assert not block.is_error
        assert [t.name for t in second.tools] == ["echo"]

    async def test_tool_failure_continues(self, build):
        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "run_shell", {"command": "ls"}))],
            [_done("sorry")],
        )
        controller = await build(transport)
        events = await (await controller.send(_prompt())).collect()

        assert _types(events) == ["tool-call", "tool-result", "done"]
        assert not events[1].success
        assert "not enabled" in events[1].error
        block = transport.requests[1].messages[2].tool_results[0]
        assert block.is_error
        assert block.content.startswith("Error:")

    async def test_iteration_cap(self, build):
        transport = FakeTransport([_tool_use(ToolCall("c", "echo", {"text": "again"}))])
        controller = await build(transport, max_tool_iterations=2)
        events = await (await controller.send(_prompt())).collect()

        assert _types(events) == ["tool-call", "tool-result"] * 2 + ["error"]
        assert events[-1].code == "TOOL_ERROR"
        assert "maximum iterations (2)" in events[-1].message
        assert len(transport.requests) == 2

    async def test_tool_result_is_truncated_for_model(self, build):
        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "echo", {"text": "x" * 5000}))],
            [_done()],
        )
        controller = await build(transport, max_tool_result_chars=1000)
        await (await controller.send(_prompt())).collect()
        content = transport.requests[1].messages[2].tool_results[0].content
        assert content.endswith("[Output truncated...]")
        assert len(content) < 1100

    async def test_references_are_prepended(self, build):
        transport = FakeTransport([_done()])
        controller = await build(transport)
        request = ChatSendRequest(
            prompt="Explain this",
            references=[ChatReference(type="file", uri="src/app.py", content="print(1)")],
        )
        await (await controller.send(request)).collect()
        text = transport.requests[0].messages[-1].content
        assert text == "[file: src/app.py]\nprint(1)\n\nExplain this"

    async def test_options_and_default_max_tokens(self, build):
        transport = FakeTransport([_done()])
        controller = await build(transport, default_max_tokens=1234)
        await (await controller.send(_prompt())).collect()
        assert transport.requests[0].max_tokens == 1234

        await controller.configure_session(
            SessionConfig(
                model="claude-sonnet-4",
                options=ModelOptions(max_tokens=50, temperature=0.2),
            )
        )
        await (await controller.send(_prompt())).collect()
        assert transport.requests[1].max_tokens == 50
        assert transport.requests[1].temperature == 0.2

    async def test_send_message_delivers_events(self, build):
        controller = await build(FakeTransport([TextChunk("hi"), _done("hi")]))
        seen = []

        async def _on_event(event):
            seen.append(event.type)

        request_id = await controller.send_message(_prompt(), _on_event, request_id="abc")
        assert request_id == "abc"
        assert seen == ["text-delta", "done"]


class TestSessionConfig:
    async def test_send_requires_configuration(self, build):
        controller = await build(FakeTransport([_done()]))
        controller._config = None
        with pytest.raises(SessionNotConfiguredError):
            await controller.send(_prompt())

    async def test_agent_prompt_becomes_system(self, build, tmp_path):
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "reviewer.agent.md").write_text("# Reviewer\nYou review code.\n")
        transport = FakeTransport([_done()])
        controller = await build(transport)
        await controller.configure_session(
            SessionConfig(model="claude-sonnet-4", agent="reviewer", system="ignored")
        )
        await (await controller.send(_prompt())).collect()
        assert transport.requests[0].system == ["# Reviewer\nYou review code.\n"]

    async def test_unknown_agent_falls_back_to_system(self, build):
        transport = FakeTransport([_done()])
        controller = await build(transport)
        await controller.configure_session(
            SessionConfig(model="claude-sonnet-4", agent="ghost", system="Be brief.")
        )
        await (await controller.send(_prompt())).collect()
        assert transport.requests[0].system == ["Be brief."]

    async def test_default_tools_come_from_tool_settings(self, build, tmp_path):
        await ToolSettingsStore(tmp_path).set_enabled("echo", True)
        transport = FakeTransport([_done()])
        controller = await build(transport)
        await controller.configure_session(SessionConfig(model="claude-sonnet-4"))
        await (await controller.send(_prompt())).collect()
        # search_github / fetch_url are enabled by default but not registered here
        assert [t.name for t in transport.requests[0].tools] == ["echo"]

    async def test_configure_during_stream_keeps_snapshot(self, build):
        transport = FakeTransport([TextChunk("a"), WAIT, _done("a")])
        controller = await build(transport)
        channel = await controller.send(_prompt(), request_id="r1")
        assert (await channel.__anext__()).type == "text-delta"

        await controller.configure_session(SessionConfig(model="gpt-4o"))
        transport.gate.set()
        await channel.collect()
        assert transport.requests[0].model == "claude-sonnet-4"
        assert controller.config.model == "gpt-4o"

    async def test_configure_assigns_conversation_id(self, build):
        controller = await build(FakeTransport([_done()]))
        config = await controller.configure_session(SessionConfig(model="m"))
        assert config.conversation_id
        with pytest.raises(ValidationError):
            config.model = "other"


class TestCancel:
    async def test_cancel_mid_stream(self, build, sink_events):
        transport = FakeTransport([TextChunk("partial"), WAIT, TextChunk("late"), _done()])
        controller = await build(transport)
        channel = await controller.send(_prompt(), request_id="r1")
        assert (await channel.__anext__()).type == "text-delta"

        assert await controller.cancel_request("r1")
        rest = await asyncio.wait_for(channel.collect(), timeout=1)
        assert _types(rest) == ["cancelled"]
        assert controller.active_request_ids == []

        transport.gate.set()
        await asyncio.sleep(0.01)
        assert _types(sink_events) == ["text-delta", "cancelled"]

    async def test_cancel_is_idempotent(self, build):
        controller = await build(FakeTransport([WAIT, _done()]))
        channel = await controller.send(_prompt(), request_id="r1")
        assert await controller.cancel_request("r1")
        assert not await controller.cancel_request("r1")
        assert _types(await channel.collect()) == ["cancelled"]

    async def test_cancel_unknown_request(self, build):
        controller = await build(FakeTransport([_done()]))
        assert not await controller.cancel_request("nope")

    async def test_cancel_after_done_is_noop(self, build):
        controller = await build(FakeTransport([_done()]))
        channel = await controller.send(_prompt(), request_id="r1")
        await channel.collect()
        await asyncio.sleep(0.01)
        assert not await controller.cancel_request("r1")
        assert channel.terminal.type == "done"

    async def test_cancel_during_tool(self, build, tmp_path):
        class BlockingTool(EchoTool):
            @property
            def name(self) -> str:
                return "block"

            async def execute(self, context, text=""):
                await asyncio.sleep(10)

        controller = await build(FakeTransport([_tool_use(ToolCall("c1", "block", {}))]))
        controller.tools.register(BlockingTool())
        await controller.configure_session(SessionConfig(model="m", tools=("block",)))
        channel = await controller.send(_prompt(), request_id="r1")
        assert (await channel.__anext__()).type == "tool-call"

        await controller.cancel_request("r1")
        assert _types(await asyncio.wait_for(channel.collect(), timeout=1)) == ["cancelled"]

    async def test_duplicate_request_id(self, build):
        transport = FakeTransport([WAIT, _done()])
        controller = await build(transport)
        channel = await controller.send(_prompt(), request_id="r1")
        with pytest.raises(DuplicateRequestError):
            await controller.send(_prompt(), request_id="r1")
        transport.gate.set()
        assert (await channel.collect())[-1].type == "done"

    async def test_shutdown_cancels_everything(self, build):
        controller = await build(FakeTransport([WAIT, _done()]))
        first = await controller.send(_prompt(), request_id="a")
        second = await controller.send(_prompt(), request_id="b")
        await controller.shutdown(timeout=1)
        assert first.terminal.type == "cancelled"
        assert second.terminal.type == "cancelled"
        assert controller.active_request_ids == []


class TestErrors:
    async def test_missing_credentials(self, build):
        async def _no_creds(registry, model):
            raise CredentialsMissing(ProviderId.OPENAI)

        controller = await build(FakeTransport([_done()]), resolver=_no_creds)
        events = await (await controller.send(_prompt())).collect()
        assert _types(events) == ["error"]
        assert events[0].code == "AUTH_ERROR"

    async def test_transport_failure_after_text(self, build):
        transport = FakeTransport([TextChunk("par"), RuntimeError("stream broke")])
        controller = await build(transport)
        events = await (await controller.send(_prompt())).collect()
        assert _types(events) == ["text-delta", "error"]
        assert events[-1].code == "INTERNAL_ERROR"
        assert events[-1].message == "stream broke"

    async def test_stream_without_final_message(self, build):
        controller = await build(FakeTransport([TextChunk("x")]))
        events = await (await controller.send(_prompt())).collect()
        assert events[-1].type == "error"


class TestHistory:
    async def test_clear_history_detaches_in_flight_turn(self, build):
        transport = FakeTransport([WAIT, _done("late answer")], [_done("fresh")])
        controller = await build(transport)
        channel = await controller.send(_prompt("first"), request_id="r1")
        await asyncio.sleep(0.01)

        await controller.clear_history()
        assert controller.history() == []
        transport.gate.set()
        await channel.collect()
        assert controller.history() == []

        await (await controller.send(_prompt("second"))).collect()
        assert [m.content for m in transport.requests[-1].messages] == ["second"]

    async def test_history_accumulates(self, build):
        transport = FakeTransport([_done("one")], [_done("two")])
        controller = await build(transport)
        await (await controller.send(_prompt("a"))).collect()
        await (await controller.send(_prompt("b"))).collect()
        assert [m.content for m in transport.requests[1].messages] == ["a", "one", "b"]


class TestCatalogs:
    async def test_get_tools_marks_enabled(self, build, tmp_path):
        controller = await build(FakeTransport([_done()]))
        await ToolSettingsStore(tmp_path).set_enabled("echo", True)
        (info,) = await controller.get_tools()
        assert (info.name, info.source, info.enabled) == ("echo", "builtin", True)

    async def test_get_agents(self, build, tmp_path):
        agents_dir = tmp_path / "agents"
        agents_dir.mkdir()
        (agents_dir / "writer.agent.md").write_text("# Writer\nDrafts prose.\n")
        controller = await build(FakeTransport([_done()]))
        (agent,) = await controller.get_agents()
        assert (agent.id, agent.name, agent.description) == ("writer", "Writer", "Drafts prose.")

    async def test_get_models_delegates(self, build):
        controller = await build(FakeTransport([_done()]))
        assert await controller.get_models() == []
        controller.registry.enabled_models.assert_awaited_once()


class TestIsolation:
    async def test_stalled_tool_does_not_block_other_request(self, build, sink_events):
        released = asyncio.Event()
        stopped = []

        class StallTool(EchoTool):
            @property
            def name(self) -> str:
                return "stall"

            async def execute(self, context, text=""):
                try:
                    await released.wait()
                except asyncio.CancelledError:
                    stopped.append(True)
                    raise
                return {"late": True}

        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "stall", {}))],
            [TextChunk("quick"), _done("quick", input_tokens=3, output_tokens=1)],
        )
        controller = await build(transport)
        controller.tools.register(StallTool())
        await controller.configure_session(SessionConfig(model="m", tools=("stall",)))

        slow = await controller.send(_prompt("slow"), request_id="a")
        assert (await slow.__anext__()).type == "tool-call"

        fast = await controller.send(_prompt("fast"), request_id="b")
        fast_events = await asyncio.wait_for(fast.collect(), timeout=1)
        assert _types(fast_events) == ["text-delta", "done"]
        assert fast_events[-1].input_tokens == 3

        await asyncio.sleep(0.01)
        assert controller.active_request_ids == ["a"]
        assert slow.terminal is None

        assert await controller.cancel_request("a")
        assert _types(await asyncio.wait_for(slow.collect(), timeout=1)) == ["cancelled"]
        await asyncio.sleep(0.2)
        assert stopped == [True]
        assert controller.active_request_ids == []

        by_request = {}
        for event in sink_events:
            by_request.setdefault(event.request_id, []).append(event.type)
        assert by_request == {"a": ["tool-call", "cancelled"], "b": ["text-delta", "done"]}


class TestConversationPersistence:
    @pytest.fixture
    def store(self, tmp_path):
        return ConversationStore(tmp_path)

    async def test_messages_and_usage_are_saved(self, build, store):
        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "echo", {"text": "ping"}), text="Checking")],
            [TextChunk("pong"), _done("pong", input_tokens=5, output_tokens=1)],
        )
        controller = await build(transport, conversations=store)
        await (await controller.send(_prompt("Say ping"))).collect()

        snapshot = await store.get(controller.config.conversation_id)
        assert [m.role for m in snapshot.messages] == ["user", "assistant", "user", "assistant"]
        assert snapshot.messages[0].content == "Say ping"
        assert snapshot.messages[1].tool_calls[0].input == {"text": "ping"}
        assert snapshot.messages[2].tool_results[0].tool_call_id == "c1"
        assert snapshot.messages[3].content == "pong"
        assert (snapshot.usage.input_tokens, snapshot.usage.output_tokens) == (5, 1)
        assert snapshot.usage.total_tokens == 6
        assert snapshot.title == "Say ping"
        assert snapshot.model == "claude-sonnet-4"

    async def test_usage_accumulates_across_requests(self, build, store):
        transport = FakeTransport([_done("ok", input_tokens=2, output_tokens=3)])
        controller = await build(transport, conversations=store)
        await (await controller.send(_prompt("a"))).collect()
        await (await controller.send(_prompt("b"))).collect()
        snapshot = await store.get(controller.config.conversation_id)
        assert snapshot.usage.total_tokens == 10
        assert len(snapshot.messages) == 4

    async def test_configure_restores_saved_history(self, build, store, tmp_path):
        first = await build(FakeTransport([_done("one")]), conversations=store)
        await (await first.send(_prompt("a"))).collect()
        conversation_id = first.config.conversation_id

        transport = FakeTransport([_done("two")])
        second = await build(transport, conversations=ConversationStore(tmp_path))
        config = await second.configure_session(
            SessionConfig(model="claude-sonnet-4", conversation_id=conversation_id)
        )
        assert config.conversation_id == conversation_id
        assert [m.content for m in second.history()] == ["a", "one"]

        await (await second.send(_prompt("b"))).collect()
        assert [m.content for m in transport.requests[0].messages] == ["a", "one", "b"]

    async def test_restored_tool_turns_round_trip(self, build, store, tmp_path):
        transport = FakeTransport(
            [_tool_use(ToolCall("c1", "echo", {"text": "x"}))], [_done("done")]
        )
        first = await build(transport, conversations=store)
        await (await first.send(_prompt())).collect()

        second = await build(FakeTransport([_done()]), conversations=ConversationStore(tmp_path))
        await second.configure_session(
            SessionConfig(model="m", conversation_id=first.config.conversation_id)
        )
        assert second.history() == first.history()

    async def test_unknown_id_starts_empty(self, build, store):
        controller = await build(FakeTransport([_done()]), conversations=store)
        await controller.configure_session(SessionConfig(model="m", conversation_id="fresh-1"))
        assert controller.history() == []
        assert await store.get("fresh-1") is None

    async def test_in_memory_history_wins_over_store(self, build, store):
        controller = await build(FakeTransport([_done("one")]), conversations=store)
        await (await controller.send(_prompt("a"))).collect()
        conversation_id = controller.config.conversation_id
        await store.append(conversation_id, [Message(role="user", content="stray")])

        await controller.configure_session(
            SessionConfig(model="m", conversation_id=conversation_id)
        )
        assert [m.content for m in controller.history()] == ["a", "one"]

    async def test_clear_history_clears_store_and_detaches_in_flight(self, build, store):
        transport = FakeTransport([WAIT, _done("late", input_tokens=9)], [_done()])
        controller = await build(transport, conversations=store)
        channel = await controller.send(_prompt("first"), request_id="r1")
        async with asyncio.timeout(1):
            while not transport.requests:
                await asyncio.sleep(0.005)

        await controller.clear_history()
        transport.gate.set()
        await channel.collect()

        snapshot = await store.get(controller.config.conversation_id)
        assert snapshot.messages == []
        assert snapshot.usage.total_tokens == 0

    async def test_delete_conversation(self, build, store):
        controller = await build(FakeTransport([_done("one")]), conversations=store)
        await (await controller.send(_prompt("a"))).collect()
        conversation_id = controller.config.conversation_id

        assert await controller.delete_conversation(conversation_id)
        assert await store.get(conversation_id) is None
        assert controller.history() == []
        assert not await controller.delete_conversation("never-seen")

    async def test_store_failure_does_not_fail_request(self, build, store):
        store.append = AsyncMock(side_effect=OSError("disk full"))
        controller = await build(FakeTransport([_done("ok")]), conversations=store)
        events = await (await controller.send(_prompt())).collect()
        assert _types(events) == ["done"]
        assert [m.content for m in controller.history()] == ["Hello", "ok"]
