# Provider failure → chat error code mapping.
# Created: 2026-02-21

from __future__ import annotations

import anthropic
import httpx
import openai

from agentage.chat.events import ErrorCode
from agentage.llm.client import CredentialsMissing


class DuplicateRequestError(Exception):
    """A request with this id is already in flight."""

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} is already in flight")


class SessionNotConfiguredError(Exception):
    """``send`` was called before ``configure_session``."""


_CONNECTION_ERRORS = (anthropic.APIConnectionError, openai.APIConnectionError, httpx.TransportError)
_STATUS_ERRORS = (anthropic.APIStatusError, openai.APIStatusError)


def _is_context_length(message: str) -> bool:
    text = message.lower()
    return (
        "prompt is too long" in text
        or "context_length_exceeded" in text
        or ("context" in text and ("length" in text or "window" in text))
    )


def classify_error(exc: BaseException) -> tuple[ErrorCode, str, bool]:
    """Return ``(code, user message, recoverable)`` for a turn failure."""
    if isinstance(exc, CredentialsMissing):
        return "AUTH_ERROR", str(exc), False
    if isinstance(exc, _CONNECTION_ERRORS):
        return "NETWORK_ERROR", "Network error. Check your connection and try again.", True

    status = exc.status_code if isinstance(exc, _STATUS_ERRORS) else None
    message = str(exc) or type(exc).__name__
    if status in (401, 403):
        return (
            "AUTH_ERROR",
            "Invalid or expired credentials. Re-authorize the provider in Settings → Models.",
            False,
        )
    if status == 429:
        return "RATE_LIMIT", "Rate limit exceeded", True
    if status == 400 and _is_context_length(message):
        return "CONTEXT_LENGTH", message, False
    if status is not None and status >= 500:
        return "INTERNAL_ERROR", f"Provider error ({status}): {message}", True
    return "INTERNAL_ERROR", message, False
