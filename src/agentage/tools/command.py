# Command tools — user-defined tools backed by a shell command.
# Created: 2026-02-21
#
# Global tools live in <config_dir>/tools/*.json, workspace tools in
# <workspace>/.agentage/tools/*.json:
#
#   {"name": "...", "description": "...", "inputSchema": {...}, "command": "..."}
#
# The call input is written to the command's stdin as JSON; stdout is parsed
# as JSON when possible, otherwise returned as text.

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import Field, ValidationError

from agentage.storage.documents import CamelModel
from agentage.tools.builtin.shell import run_process, truncate_output
from agentage.tools.protocol import BaseTool, ToolContext, ToolError, ToolSource

logger = logging.getLogger(__name__)


class CommandToolSpec(CamelModel):
    name: str = Field(..., pattern=r"^[a-zA-Z0-9_-]{1,64}$")
    description: str = ""
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    command: str = Field(..., min_length=1)
    timeout: float = Field(default=60.0, gt=0)  # seconds


class CommandTool(BaseTool):
    def __init__(self, spec: CommandToolSpec, source: ToolSource, base_dir: Path):
        self.spec = spec
        self.source = source
        self.base_dir = base_dir

    @property
    def name(self) -> str:
        return self.spec.name

    @property
    def description(self) -> str:
        return self.spec.description or f"Run {self.spec.name}"

    @property
    def parameters(self) -> dict[str, Any]:
        return self.spec.input_schema

    async def execute(self, context: ToolContext, **params: Any) -> Any:
        cwd = context.workspace_path or str(self.base_dir)
        try:
            code, stdout, stderr = await run_process(
                self.spec.command,
                cwd=cwd,
                timeout=self.spec.timeout,
                stdin=json.dumps(params).encode(),
            )
        except TimeoutError:
            raise ToolError(f"{self.name} timed out after {self.spec.timeout:g}s") from None
        if code != 0:
            message, _ = truncate_output(stderr.strip() or stdout.strip(), 2000)
            raise ToolError(f"{self.name} exited with {code}: {message}")
        try:
            return json.loads(stdout)
        except ValueError:
            return truncate_output(stdout)[0]


def load_command_tools(directory: Path, source: ToolSource) -> list[CommandTool]:
    """Load every valid ``*.json`` definition in *directory*.

    Invalid files are logged and skipped.
    """
    if not directory.is_dir():
        return []
    tools = []
    for path in sorted(directory.glob("*.json")):
        try:
            spec = CommandToolSpec.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning("Skipping tool definition %s: %s", path, e)
            continue
        tools.append(CommandTool(spec, source, directory))
    return tools
