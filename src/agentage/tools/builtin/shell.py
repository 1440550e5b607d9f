# run_shell — execute a shell command in the active workspace.
# Created: 2026-02-21

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any

from agentage.tools.protocol import BaseTool, ToolContext, ToolError

logger = logging.getLogger(__name__)

MAX_OUTPUT_CHARS = 20_000
DEFAULT_TIMEOUT_MS = 30_000


def truncate_output(text: str, limit: int = MAX_OUTPUT_CHARS) -> tuple[str, bool]:
    if len(text) <= limit:
        return text, False
    return text[:limit] + "\n\n[Output truncated...]", True


async def run_process(
    command: str,
    *,
    cwd: str | None = None,
    timeout: float | None = None,
    stdin: bytes | None = None,
) -> tuple[int, str, str]:
    """Run *command* through the shell and return (exit code, stdout, stderr).

    The child is killed when the timeout expires or the awaiting task is
    cancelled, so an aborted call never leaves a process behind.
    """
    proc = await asyncio.create_subprocess_shell(
        command,
        cwd=cwd,
        stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(stdin), timeout=timeout)
    except (TimeoutError, asyncio.CancelledError):
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
            logger.info("Killed shell process %s", proc.pid)
        raise
    return (
        proc.returncode or 0,
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
    )


class ShellTool(BaseTool):
    """Execute shell commands."""

    # Dangerous patterns to block
    DANGEROUS_PATTERNS = [
        r"rm\s+-rf\s+/(\s|$)",
        r"rm\s+-rf\s+~",
        r"mkfs\.",
        r"dd\s+if=/dev/",
        r":\(\)\s*\{\s*:\|:&\s*\}\s*;",  # Fork bomb
    ]

    @property
    def name(self) -> str:
        return "run_shell"

    @property
    def description(self) -> str:
        return "Execute a shell command"

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string", "description": "Shell command to run"},
                "timeout": {
                    "type": "number",
                    "description": "Timeout in milliseconds",
                    "default": DEFAULT_TIMEOUT_MS,
                },
            },
            "required": ["command"],
        }

    async def execute(
        self, context: ToolContext, command: str, timeout: float = DEFAULT_TIMEOUT_MS
    ) -> dict[str, Any]:
        for pattern in self.DANGEROUS_PATTERNS:
            if re.search(pattern, command, re.IGNORECASE):
                raise ToolError(f"Dangerous command blocked: {command}")

        try:
            code, stdout, stderr = await run_process(
                command, cwd=context.workspace_path, timeout=timeout / 1000
            )
        except TimeoutError:
            raise ToolError(f"Command timed out after {timeout / 1000:g}s") from None
        except OSError as e:
            raise ToolError(f"Shell command failed: {e}") from e

        out, out_cut = truncate_output(stdout)
        err, err_cut = truncate_output(stderr)
        return {"stdout": out, "stderr": err, "exitCode": code, "truncated": out_cut or err_cut}
