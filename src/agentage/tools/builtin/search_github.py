# search_github — GitHub repository search.
# Created: 2026-02-21

from __future__ import annotations

import logging
from typing import Any

import httpx

from agentage.tools.protocol import BaseTool, ToolContext, ToolError

logger = logging.getLogger(__name__)

_SEARCH_URL = "https://api.github.com/search/repositories"


class SearchGithubTool(BaseTool):
    @property
    def name(self) -> str:
        return "search_github"

    @property
    def description(self) -> str:
        return "Search GitHub repositories by query"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": {
                    "type": "number",
                    "description": "Maximum results to return",
                    "default": 10,
                },
            },
            "required": ["query"],
        }

    async def execute(
        self, context: ToolContext, query: str, limit: int = 10
    ) -> list[dict[str, Any]]:
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.get(
                    _SEARCH_URL,
                    params={"q": query, "per_page": min(max(int(limit), 1), 100)},
                    headers={
                        "Accept": "application/vnd.github.v3+json",
                        "User-Agent": "Agentage-Desktop",
                    },
                )
        except httpx.HTTPError as e:
            raise ToolError(f"GitHub request failed: {e}") from e
        if resp.status_code != 200:
            raise ToolError(f"GitHub API error: {resp.status_code}")

        return [
            {
                "name": repo["full_name"],
                "stars": repo.get("stargazers_count", 0),
                "url": repo["html_url"],
                "description": repo.get("description"),
            }
            for repo in resp.json().get("items", [])
        ]
