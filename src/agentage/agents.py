# Agent catalog — predefined system prompts in <config_dir>/agents/.
# Created: 2026-02-21
#
# An agent is a *.agent.md (or *.yml) file whose text becomes the system
# prompt when a session is configured with that agent.

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SUFFIXES = (".agent.md", ".yml", ".yaml")


@dataclass
class AgentInfo:
    id: str
    name: str
    description: str
    path: str


def _agent_id(path: Path) -> str | None:
    for suffix in _SUFFIXES:
        if path.name.endswith(suffix):
            return path.name[: -len(suffix)]
    return None


def _text_field(data: dict, key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _load_mapping(text: str, source: Path) -> dict:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        logger.warning("Invalid YAML in agent file %s: %s", source, e)
        return {}
    return data if isinstance(data, dict) else {}


def _split_front_matter(text: str) -> tuple[str, str]:
    """Split a leading ``---`` fenced block from a markdown body."""
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != "---":
        return "", text
    for i, line in enumerate(lines[1:], start=1):
        if line.strip() == "---":
            return "".join(lines[1:i]), "".join(lines[i + 1 :])
    return "", text


def _describe(agent_id: str, text: str, source: Path) -> tuple[str, str]:
    """Name and description of an agent file.

    YAML agents use their top-level ``name`` and ``description`` keys.
    Markdown agents use the same keys from optional front matter, then fall
    back to the first heading and the first paragraph line after it.
    """
    if source.suffix in (".yml", ".yaml"):
        data = _load_mapping(text, source)
        return _text_field(data, "name") or agent_id, _text_field(data, "description")

    front, body = _split_front_matter(text)
    data = _load_mapping(front, source) if front else {}
    name, description = _text_field(data, "name"), _text_field(data, "description")
    for raw in body.splitlines():
        line = raw.strip()
        if name and description:
            break
        if not line:
            continue
        if line.startswith("#"):
            name = name or line.lstrip("#").strip()
        elif not description:
            description = line
    return name or agent_id, description


class AgentCatalog:
    def __init__(self, directory: Path):
        self.directory = directory

    def _paths(self) -> dict[str, Path]:
        if not self.directory.is_dir():
            return {}
        found = {}
        for path in sorted(self.directory.iterdir()):
            agent_id = _agent_id(path)
            if agent_id and path.is_file():
                found.setdefault(agent_id, path)
        return found

    def _list(self) -> list[AgentInfo]:
        agents = []
        for agent_id, path in self._paths().items():
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                logger.warning("Unreadable agent file %s: %s", path, e)
                continue
            name, description = _describe(agent_id, text, path)
            agents.append(
                AgentInfo(id=agent_id, name=name, description=description, path=str(path))
            )
        return agents

    async def list_agents(self) -> list[AgentInfo]:
        return await asyncio.to_thread(self._list)

    async def load_prompt(self, agent_id: str) -> str | None:
        """Full text of the agent file, or None for an unknown agent."""
        path = self._paths().get(agent_id)
        if path is None:
            return None
        return await asyncio.to_thread(path.read_text, encoding="utf-8")
