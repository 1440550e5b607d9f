# web_search — DuckDuckGo HTML search, no API key required.
# Created: 2026-02-21

from __future__ import annotations

import html
import logging
import re
import urllib.parse
from typing import Any

import httpx

from agentage.tools.protocol import BaseTool, ToolContext, ToolError

logger = logging.getLogger(__name__)

_DUCKDUCKGO_URL = "https://html.duckduckgo.com/html/"
_MAX_RESULTS = 20

_RESULT_LINK = re.compile(
    r'<a[^>]*class="[^"]*result__a[^"]*"[^>]*href="([^"]+)"[^>]*>(.*?)</a>',
    re.IGNORECASE | re.DOTALL,
)
_RESULT_SNIPPET = re.compile(
    r'class="[^"]*result__snippet[^"]*"[^>]*>(.*?)</(?:a|div|td)>',
    re.IGNORECASE | re.DOTALL,
)
_TAG = re.compile(r"<[^>]+>")


def _clean(fragment: str) -> str:
    return html.unescape(_TAG.sub("", fragment)).strip()


def _real_url(href: str) -> str:
    """DuckDuckGo wraps targets in a redirect; unwrap ``uddg``."""
    absolute = urllib.parse.urljoin(_DUCKDUCKGO_URL, html.unescape(href))
    target = urllib.parse.parse_qs(urllib.parse.urlparse(absolute).query).get("uddg")
    return target[0] if target else absolute


def parse_results(page: str, limit: int) -> list[dict[str, str]]:
    links = _RESULT_LINK.findall(page)
    snippets = [_clean(s) for s in _RESULT_SNIPPET.findall(page)]
    results = []
    for i, (href, title) in enumerate(links):
        url = _real_url(href)
        # Skip ads and internal links
        if "duckduckgo.com" in url or not url.startswith("http"):
            continue
        results.append(
            {
                "title": _clean(title),
                "url": url,
                "snippet": snippets[i] if i < len(snippets) else "",
            }
        )
        if len(results) >= limit:
            break
    return results


class WebSearchTool(BaseTool):
    """Search the web using DuckDuckGo."""

    @property
    def name(self) -> str:
        return "web_search"

    @property
    def description(self) -> str:
        return (
            "Search the web using DuckDuckGo. Returns a list of URLs with titles and "
            "snippets. Use this to discover URLs for research."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "description": "Search query"},
                "limit": {
                    "type": "number",
                    "description": "Maximum results to return (max 20)",
                    "default": 10,
                },
                "region": {
                    "type": "string",
                    "description": "Region code (e.g., us, uk, de). Default: worldwide",
                },
                "timeRange": {
                    "type": "string",
                    "enum": ["d", "w", "m", "y"],
                    "description": "Time range filter: d=day, w=week, m=month, y=year",
                },
            },
            "required": ["query"],
        }

    async def execute(
        self,
        context: ToolContext,
        query: str,
        limit: int = 10,
        region: str | None = None,
        timeRange: str | None = None,  # noqa: N803 - schema field name
    ) -> dict[str, Any]:
        limit = min(max(int(limit), 1), _MAX_RESULTS)
        form = {"q": query, "kl": region or "wt-wt"}
        if timeRange:
            form["df"] = timeRange

        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.post(
                    _DUCKDUCKGO_URL, data=form, headers={"User-Agent": "Agentage-Desktop/1.0"}
                )
        except httpx.HTTPError as e:
            raise ToolError(f"Search failed: {e}") from e
        if resp.status_code != 200:
            raise ToolError(f"Search failed: HTTP {resp.status_code}")

        return {"query": query, "results": parse_results(resp.text, limit)}
