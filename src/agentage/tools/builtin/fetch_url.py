# fetch_url — download a page and convert it to readable markdown.
# Created: 2026-02-21

from __future__ import annotations

import logging
import re
from typing import Any

import html2text
import httpx

from agentage.tools.protocol import BaseTool, ToolContext, ToolError

logger = logging.getLogger(__name__)

_MAX_CONTENT_CHARS = 50_000
_USER_AGENT = "Agentage-Desktop/1.0"


class FetchUrlTool(BaseTool):
    """Fetch a URL and extract clean text."""

    @property
    def name(self) -> str:
        return "fetch_url"

    @property
    def description(self) -> str:
        return (
            "Fetch content from a URL and extract clean, readable text. "
            "Returns title, content, and metadata."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"url": {"type": "string", "description": "URL to fetch"}},
            "required": ["url"],
        }

    async def execute(self, context: ToolContext, url: str) -> dict[str, Any]:
        if not url.startswith(("http://", "https://")):
            raise ToolError(f"Unsupported URL: {url}")

        try:
            async with httpx.AsyncClient(timeout=30, follow_redirects=True) as client:
                resp = await client.get(url, headers={"User-Agent": _USER_AGENT})
                resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ToolError(f"HTTP {e.response.status_code} fetching {url}") from e
        except httpx.HTTPError as e:
            raise ToolError(f"Error fetching URL: {e}") from e

        content_type = resp.headers.get("content-type", "")
        if "text/html" in content_type:
            converter = html2text.HTML2Text()
            converter.ignore_links = False
            converter.ignore_images = True
            converter.body_width = 0
            title = _extract_title(resp.text)
            content = converter.handle(resp.text)
        else:
            title = url
            content = resp.text

        truncated = len(content) > _MAX_CONTENT_CHARS
        return {
            "url": str(resp.url),
            "title": title,
            "content": content[:_MAX_CONTENT_CHARS],
            "contentType": content_type.split(";")[0].strip(),
            "truncated": truncated,
        }


def _extract_title(html: str) -> str:
    """Extract <title> from HTML, falling back to 'Untitled'."""
    match = re.search(r"<title[^>]*>(.*?)</title>", html, re.IGNORECASE | re.DOTALL)
    if match:
        return match.group(1).strip()
    return "Untitled"
