"""Service container.

``AppServices`` wires every long-lived component from one ``Settings``
object: the event bus, the JSON stores, OAuth, the model registry, tools and
the chat controller. ``get_services()`` returns the process-wide instance,
registered with ``lifecycle`` for shutdown and test reset.

Created: 2026-02-21
"""

from __future__ import annotations

import logging

from agentage import lifecycle
from agentage.account import AccountService
from agentage.agents import AgentCatalog
from agentage.bus import ChatEventPublished, EventBus
from agentage.catalog.registry import ModelProviderRegistry
from agentage.chat.controller import ChatSessionController
from agentage.chat.events import _ChatEventBase
from agentage.config import Settings, get_settings
from agentage.oauth.manager import OAuthManager
from agentage.oauth.providers import create_adapters
from agentage.oauth.token_store import CredentialStore
from agentage.storage.app_settings import AccountStore, SettingsStore
from agentage.storage.conversations import ConversationStore
from agentage.tools.builtin import builtin_tools
from agentage.tools.dispatcher import ToolDispatcher
from agentage.tools.registry import ToolRegistry
from agentage.tools.settings import ToolSettingsStore

logger = logging.getLogger(__name__)


class AppServices:
    def __init__(self, settings: Settings):
        self.settings = settings
        config_dir = settings.config_dir

        self.bus = EventBus()
        self.app_settings = SettingsStore(config_dir)
        self.tool_settings = ToolSettingsStore(config_dir)

        self.credentials = CredentialStore(config_dir)
        self.oauth = OAuthManager(
            self.credentials,
            create_adapters(callback_timeout=settings.oauth_callback_timeout),
            bus=self.bus,
        )
        self.account = AccountService(
            AccountStore(config_dir),
            settings.backend_url,
            callback_timeout=settings.oauth_callback_timeout,
        )
        self.models = ModelProviderRegistry(
            config_dir,
            self.oauth,
            bus=self.bus,
            staleness_hours=settings.model_staleness_hours,
        )

        self.tools = ToolRegistry()
        for tool in builtin_tools():
            self.tools.register(tool)
        self.tools.load_directory(config_dir / "tools", "global")
        self.dispatcher = ToolDispatcher(
            self.tools, timeout=settings.tool_timeout, abort_grace=settings.tool_abort_grace
        )
        self.agents = AgentCatalog(config_dir / "agents")
        self.conversations = ConversationStore(config_dir)

        self.chat = ChatSessionController(
            self.models,
            self.tools,
            self.dispatcher,
            self.tool_settings,
            self.agents,
            self.app_settings,
            sink=self._publish_chat_event,
            max_tool_iterations=settings.max_tool_iterations,
            max_tool_result_chars=settings.max_tool_result_chars,
            default_max_tokens=settings.default_max_tokens,
            conversations=self.conversations,
        )

    async def _publish_chat_event(self, event: _ChatEventBase) -> None:
        await self.bus.publish(
            ChatEventPublished(request_id=event.request_id, payload=event.to_payload())
        )

    async def shutdown(self) -> None:
        await self.chat.shutdown()
        logger.info("Services stopped")


_services: AppServices | None = None


def get_services() -> AppServices:
    """Return the process-wide container, building it on first use."""
    global _services
    if _services is None:
        _services = AppServices(get_settings())
        lifecycle.register("services", shutdown=_services.shutdown, reset=_reset_services)
    return _services


def _reset_services() -> None:
    global _services
    _services = None
