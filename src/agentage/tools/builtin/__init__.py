# Builtin tools — always available, lowest precedence in the catalog.
# Created: 2026-02-21

from __future__ import annotations

from agentage.tools.builtin.fetch_url import FetchUrlTool
from agentage.tools.builtin.search_github import SearchGithubTool
from agentage.tools.builtin.shell import ShellTool
from agentage.tools.builtin.web_search import WebSearchTool
from agentage.tools.protocol import BaseTool


def builtin_tools() -> list[BaseTool]:
    return [SearchGithubTool(), FetchUrlTool(), ShellTool(), WebSearchTool()]


__all__ = ["FetchUrlTool", "SearchGithubTool", "ShellTool", "WebSearchTool", "builtin_tools"]
