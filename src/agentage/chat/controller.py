"""Chat session controller.

Owns the active ``SessionConfig``, the conversation histories and every
in-flight request. ``send()`` starts a request task and hands back its
``RequestChannel``; the task runs provider turns and tool calls until the
model stops asking for tools, then emits ``done``. With a ``ConversationStore``
attached, every message and the token totals are saved as they happen and a
configured conversation id is restored from disk.

Cancellation is driven from ``cancel_request()``: it closes the channel with
a ``cancelled`` event first, then signals the token and cancels the task, so
the caller sees exactly one terminal event no matter where the task was.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from agentage.agents import AgentCatalog, AgentInfo
from agentage.cancellation import CancellationToken
from agentage.catalog.models import ChatModelInfo
from agentage.catalog.registry import ModelProviderRegistry
from agentage.chat.channel import EventSink, RequestChannel
from agentage.chat.errors import DuplicateRequestError, SessionNotConfiguredError, classify_error
from agentage.chat.events import (
    CancelledEvent,
    DoneEvent,
    ErrorEvent,
    TextDeltaEvent,
    ThinkingEvent,
    ToolCallEvent,
    ToolResultEvent,
)
from agentage.chat.schemas import ChatSendRequest, SessionConfig
from agentage.llm.client import LLMClient, resolve_llm_client
from agentage.llm.protocol import (
    ChatTransport,
    Message,
    TextChunk,
    ThinkingChunk,
    ToolResultBlock,
    TurnComplete,
    TurnRequest,
)
from agentage.storage.app_settings import SettingsStore
from agentage.storage.conversations import ConversationStore
from agentage.tools.dispatcher import ToolDispatcher
from agentage.tools.protocol import ToolContext, ToolDefinition, ToolInfo, ToolResult
from agentage.tools.registry import ToolRegistry
from agentage.tools.settings import ToolSettingsStore

logger = logging.getLogger(__name__)

ClientResolver = Callable[[ModelProviderRegistry, str], Awaitable[LLMClient]]
TransportFactory = Callable[[LLMClient], ChatTransport]


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Conversation:
    id: str
    messages: list[Message] = field(default_factory=list)


@dataclass
class InFlightRequest:
    request_id: str
    config: SessionConfig
    token: CancellationToken
    channel: RequestChannel
    task: asyncio.Task | None = None


class ChatSessionController:
    def __init__(
        self,
        registry: ModelProviderRegistry,
        tools: ToolRegistry,
        dispatcher: ToolDispatcher,
        tool_settings: ToolSettingsStore,
        agents: AgentCatalog,
        settings_store: SettingsStore | None = None,
        sink: EventSink | None = None,
        *,
        max_tool_iterations: int = 10,
        max_tool_result_chars: int = 30_000,
        default_max_tokens: int = 4096,
        client_resolver: ClientResolver = resolve_llm_client,
        transport_factory: TransportFactory | None = None,
        conversations: ConversationStore | None = None,
    ):
        self.registry = registry
        self.tools = tools
        self.dispatcher = dispatcher
        self.tool_settings = tool_settings
        self.agents = agents
        self.settings_store = settings_store
        self.sink = sink
        self.max_tool_iterations = max_tool_iterations
        self.max_tool_result_chars = max_tool_result_chars
        self.default_max_tokens = default_max_tokens
        self._resolve_client = client_resolver
        self._create_transport = transport_factory or (lambda client: client.create_transport())
        self.conversations = conversations

        self._config: SessionConfig | None = None
        self._conversations: dict[str, Conversation] = {}
        self._requests: dict[str, InFlightRequest] = {}

    # -- session --

    @property
    def config(self) -> SessionConfig | None:
        return self._config

    @property
    def active_request_ids(self) -> list[str]:
        return list(self._requests)

    async def configure_session(self, config: SessionConfig) -> SessionConfig:
        """Make *config* the active session. In-flight requests keep their own.

        A known conversation id that is not in memory yet is restored from
        the conversation store, so its history carries into the next request.
        """
        if config.conversation_id is None:
            config = config.model_copy(update={"conversation_id": _new_id()})
        elif config.conversation_id not in self._conversations:
            await self._restore(config.conversation_id)
        self._conversations.setdefault(
            config.conversation_id, Conversation(id=config.conversation_id)
        )
        self._config = config
        logger.info(
            "Session configured: model=%s agent=%s conversation=%s",
            config.model,
            config.agent,
            config.conversation_id,
        )
        return config

    def history(self, conversation_id: str | None = None) -> list[Message]:
        conversation_id = conversation_id or (self._config and self._config.conversation_id)
        conversation = self._conversations.get(conversation_id) if conversation_id else None
        return list(conversation.messages) if conversation else []

    async def clear_history(self) -> None:
        """Start the active conversation over.

        The history list is replaced, not emptied; requests already in flight
        keep appending to the list they started with and no longer reach the
        conversation store.
        """
        if self._config is None:
            return
        conversation = self._conversations.get(self._config.conversation_id)
        if conversation is not None:
            conversation.messages = []
            logger.info("Cleared history for conversation %s", conversation.id)
        if self.conversations is not None:
            await self.conversations.clear_messages(self._config.conversation_id)

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Forget a conversation in memory and on disk.

        Deleting the active conversation leaves the session on a fresh, empty
        history under the same id.
        """
        forgotten = self._conversations.pop(conversation_id, None) is not None
        deleted = False
        if self.conversations is not None:
            deleted = await self.conversations.delete(conversation_id)
        if self._config is not None and self._config.conversation_id == conversation_id:
            self._conversations[conversation_id] = Conversation(id=conversation_id)
        return forgotten or deleted

    async def _restore(self, conversation_id: str) -> None:
        if self.conversations is None:
            return
        snapshot = await self.conversations.get(conversation_id)
        if snapshot is None:
            return
        self._conversations.setdefault(
            conversation_id, Conversation(id=conversation_id, messages=snapshot.history())
        )
        logger.info(
            "Restored conversation %s (%d messages)", conversation_id, len(snapshot.messages)
        )

    # -- requests --

    async def send(self, request: ChatSendRequest, request_id: str | None = None) -> RequestChannel:
        """Start a request and return its event channel.

        Raises:
            SessionNotConfiguredError: no ``configure_session()`` yet.
            DuplicateRequestError: *request_id* is already in flight.
        """
        config = self._config
        if config is None:
            raise SessionNotConfiguredError("Chat session is not configured")
        request_id = request_id or _new_id()
        if request_id in self._requests:
            raise DuplicateRequestError(request_id)

        conversation = self._conversations.setdefault(
            config.conversation_id, Conversation(id=config.conversation_id)
        )
        history = conversation.messages
        user_message = Message(role="user", content=request.render_prompt())
        messages = [*history, user_message]
        history.append(user_message)

        inflight = InFlightRequest(
            request_id=request_id,
            config=config,
            token=CancellationToken(),
            channel=RequestChannel(request_id, self.sink),
        )
        self._requests[request_id] = inflight
        inflight.task = asyncio.create_task(
            self._run(inflight, messages, history), name=f"chat:{request_id}"
        )
        logger.info("Chat request %s started (model=%s)", request_id, config.model)
        return inflight.channel

    async def send_message(
        self,
        request: ChatSendRequest,
        on_event: EventSink,
        request_id: str | None = None,
    ) -> str:
        """Run a request to completion, passing each event to *on_event*."""
        channel = await self.send(request, request_id)
        async for event in channel:
            await on_event(event)
        return channel.request_id

    async def cancel_request(self, request_id: str) -> bool:
        """Cancel an in-flight request. Unknown or finished ids are a no-op."""
        inflight = self._requests.pop(request_id, None)
        if inflight is None:
            return False
        inflight.token.cancel("Cancelled by user")
        accepted = await inflight.channel.emit(
            CancelledEvent(request_id=request_id, reason=inflight.token.reason)
        )
        if inflight.task is not None and not inflight.task.done():
            inflight.task.cancel()
        if accepted:
            logger.info("Chat request %s cancelled", request_id)
        return accepted

    async def shutdown(self, timeout: float = 5.0) -> None:
        tasks = [r.task for r in self._requests.values() if r.task is not None]
        for request_id in list(self._requests):
            await self.cancel_request(request_id)
        if tasks:
            await asyncio.wait(tasks, timeout=timeout)

    # -- catalog queries --

    async def get_models(self) -> list[ChatModelInfo]:
        return await self.registry.enabled_models()

    async def get_tools(self) -> list[ToolInfo]:
        self.tools.set_workspace(await self._workspace())
        enabled = set((await self.tool_settings.get()).enabled_tools)
        return [
            ToolInfo(
                name=tool.name,
                description=tool.description,
                source=tool.source,
                enabled=tool.name in enabled,
                parameters=tool.parameters,
            )
            for tool in self.tools.merged().values()
        ]

    async def get_agents(self) -> list[AgentInfo]:
        return await self.agents.list_agents()

    # -- request task --

    async def _run(
        self, inflight: InFlightRequest, messages: list[Message], record: list[Message]
    ) -> None:
        channel = inflight.channel
        try:
            await self._remember(inflight.config, record, messages[-1:])
            await self._run_turns(inflight, messages, record)
        except asyncio.CancelledError:
            await channel.emit(
                CancelledEvent(request_id=inflight.request_id, reason=inflight.token.reason)
            )
            if not inflight.token.is_cancelled:
                raise
        except Exception as e:
            code, message, recoverable = classify_error(e)
            if code == "INTERNAL_ERROR":
                logger.exception("Chat request %s failed", inflight.request_id)
            else:
                logger.warning("Chat request %s failed: %s (%s)", inflight.request_id, code, e)
            await channel.emit(
                ErrorEvent(
                    request_id=inflight.request_id,
                    code=code,
                    message=message,
                    recoverable=recoverable,
                )
            )
        finally:
            if self._requests.get(inflight.request_id) is inflight:
                del self._requests[inflight.request_id]

    async def _run_turns(
        self, inflight: InFlightRequest, messages: list[Message], record: list[Message]
    ) -> None:
        config = inflight.config
        request_id = inflight.request_id
        emit = inflight.channel.emit

        client = await self._resolve_client(self.registry, config.model)
        transport = self._create_transport(client)
        workspace = await self._workspace()
        system = client.system_blocks(await self._system_prompt(config))
        tools = await self._tool_definitions(config, workspace)
        allowed = {t.name for t in tools}
        context = ToolContext(
            request_id=request_id, workspace_path=workspace, cancellation=inflight.token
        )
        options = config.options
        input_tokens = output_tokens = 0

        for _ in range(self.max_tool_iterations):
            inflight.token.check()
            turn = TurnRequest(
                model=config.model,
                messages=list(messages),
                system=system,
                tools=tools,
                max_tokens=(options and options.max_tokens) or self.default_max_tokens,
                temperature=options.temperature if options else None,
                top_p=options.top_p if options else None,
            )

            complete: TurnComplete | None = None
            async for chunk in transport.stream(turn):
                if isinstance(chunk, TextChunk):
                    await emit(TextDeltaEvent(request_id=request_id, text=chunk.text))
                elif isinstance(chunk, ThinkingChunk):
                    await emit(ThinkingEvent(request_id=request_id, text=chunk.text))
                elif isinstance(chunk, TurnComplete):
                    complete = chunk
            if complete is None:
                raise RuntimeError("Provider stream ended without a final message")

            input_tokens += complete.input_tokens
            output_tokens += complete.output_tokens

            if complete.stop_reason != "tool_use" or not complete.tool_calls:
                answer = Message(role="assistant", content=complete.text)
                record.append(answer)
                await self._remember(config, record, [answer])
                await self._add_usage(config, record, input_tokens, output_tokens)
                await emit(
                    DoneEvent(
                        request_id=request_id,
                        stop_reason=complete.stop_reason,
                        input_tokens=input_tokens,
                        output_tokens=output_tokens,
                    )
                )
                logger.info(
                    "Chat request %s done (%s, %d in / %d out)",
                    request_id,
                    complete.stop_reason,
                    input_tokens,
                    output_tokens,
                )
                return

            assistant = Message(
                role="assistant", content=complete.text, tool_calls=complete.tool_calls
            )
            results: list[ToolResultBlock] = []
            for call in complete.tool_calls:
                await emit(
                    ToolCallEvent(
                        request_id=request_id, id=call.id, name=call.name, input=call.input
                    )
                )
                if call.name in allowed:
                    result = await self.dispatcher.execute(call.id, call.name, call.input, context)
                else:
                    result = ToolResult(
                        id=call.id,
                        name=call.name,
                        success=False,
                        error=f"Tool {call.name} is not enabled for this session",
                    )
                await emit(
                    ToolResultEvent(
                        request_id=request_id,
                        id=call.id,
                        name=call.name,
                        success=result.success,
                        output=result.data,
                        error=result.error,
                    )
                )
                results.append(
                    ToolResultBlock(
                        tool_call_id=call.id,
                        name=call.name,
                        content=result.to_model_text(self.max_tool_result_chars),
                        is_error=not result.success,
                    )
                )
            tool_message = Message(role="user", tool_results=results)
            messages.extend([assistant, tool_message])
            record.extend([assistant, tool_message])
            await self._remember(config, record, [assistant, tool_message])

        logger.warning(
            "Chat request %s hit the tool iteration limit (%d)",
            request_id,
            self.max_tool_iterations,
        )
        await self._add_usage(config, record, input_tokens, output_tokens)
        await emit(
            ErrorEvent(
                request_id=request_id,
                code="TOOL_ERROR",
                message=(
                    "Tool execution loop exceeded maximum iterations "
                    f"({self.max_tool_iterations})"
                ),
            )
        )

    def _store_for(self, config: SessionConfig, record: list[Message]) -> ConversationStore | None:
        """The store, while *record* is still the conversation's live history."""
        conversation = self._conversations.get(config.conversation_id)
        if self.conversations is None or conversation is None:
            return None
        return self.conversations if conversation.messages is record else None

    async def _remember(
        self, config: SessionConfig, record: list[Message], messages: list[Message]
    ) -> None:
        store = self._store_for(config, record)
        if store is None or not messages:
            return
        try:
            await store.append(
                config.conversation_id, messages, model=config.model, agent=config.agent
            )
        except (OSError, ValueError) as e:
            logger.warning("Could not save conversation %s: %s", config.conversation_id, e)

    async def _add_usage(
        self, config: SessionConfig, record: list[Message], input_tokens: int, output_tokens: int
    ) -> None:
        store = self._store_for(config, record)
        if store is None:
            return
        try:
            await store.add_usage(config.conversation_id, input_tokens, output_tokens)
        except (OSError, ValueError) as e:
            logger.warning("Could not save usage for %s: %s", config.conversation_id, e)

    async def _workspace(self) -> str | None:
        if self.settings_store is None:
            return None
        return (await self.settings_store.get()).active_workspace

    async def _system_prompt(self, config: SessionConfig) -> str | None:
        if config.agent:
            prompt = await self.agents.load_prompt(config.agent)
            if prompt is not None:
                return prompt
            logger.warning("Unknown agent %s; using the session system prompt", config.agent)
        return config.system

    async def _tool_definitions(
        self, config: SessionConfig, workspace: str | None
    ) -> list[ToolDefinition]:
        self.tools.set_workspace(workspace)
        if config.tools is not None:
            names = list(config.tools)
        else:
            names = (await self.tool_settings.get()).enabled_tools
        definitions = []
        for name in names:
            tool = self.tools.get(name)
            if tool is None:
                logger.debug("🔧 Skipping unknown tool %s", name)
                continue
            definitions.append(tool.definition)
        return definitions
