# Tests for chat/errors.py
# Created: 2026-02-21

import anthropic
import httpx
import openai
import pytest

from agentage.chat.errors import classify_error
from agentage.llm.client import CredentialsMissing, SubscriptionTokenUnsupported
from agentage.oauth.models import ProviderId

_REQUEST = httpx.Request("POST", "https://api.example/v1/messages")


def _status_error(cls, status, message="failed"):
    return cls(message, response=httpx.Response(status, request=_REQUEST), body=None)


@pytest.mark.parametrize(
    ("exc", "code", "recoverable"),
    [
        (_status_error(anthropic.AuthenticationError, 401), "AUTH_ERROR", False),
        (_status_error(openai.PermissionDeniedError, 403), "AUTH_ERROR", False),
        (_status_error(anthropic.RateLimitError, 429), "RATE_LIMIT", True),
        (_status_error(openai.RateLimitError, 429), "RATE_LIMIT", True),
        (
            _status_error(anthropic.BadRequestError, 400, "prompt is too long: 250000 tokens"),
            "CONTEXT_LENGTH",
            False,
        ),
        (
            _status_error(openai.BadRequestError, 400, "context_length_exceeded"),
            "CONTEXT_LENGTH",
            False,
        ),
        (_status_error(anthropic.InternalServerError, 529), "INTERNAL_ERROR", True),
        (anthropic.APIConnectionError(request=_REQUEST), "NETWORK_ERROR", True),
        (openai.APIConnectionError(request=_REQUEST), "NETWORK_ERROR", True),
        (httpx.ReadTimeout("slow"), "NETWORK_ERROR", True),
        (CredentialsMissing(ProviderId.OPENAI), "AUTH_ERROR", False),
        (SubscriptionTokenUnsupported(ProviderId.OPENAI), "AUTH_ERROR", False),
        (RuntimeError("weird"), "INTERNAL_ERROR", False),
    ],
)
def test_classify_error(exc, code, recoverable):
    got_code, message, got_recoverable = classify_error(exc)
    assert (got_code, got_recoverable) == (code, recoverable)
    assert message


def test_plain_bad_request_is_internal():
    exc = _status_error(anthropic.BadRequestError, 400, "messages: invalid role")
    assert classify_error(exc)[0] == "INTERNAL_ERROR"
