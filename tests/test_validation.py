# Tests for catalog/validation.py
# Created: 2026-02-21

import httpx
import pytest
from conftest import http_response, make_jwt

from agentage.catalog.validation import (
    ANTHROPIC_FALLBACK_MODELS,
    OPENAI_API_FALLBACK_MODELS,
    OPENAI_CHATGPT_FALLBACK_MODELS,
    anthropic_headers,
    context_window,
    validate_token,
)
from agentage.oauth.models import ProviderId


class TestAnthropic:
    async def test_models_listing(self, http_client):
        http_client.get.return_value = http_response(
            200,
            {
                "data": [
                    {"type": "model", "id": "claude-opus-4", "display_name": "Claude Opus 4"},
                    {"type": "other", "id": "ignored"},
                ]
            },
        )
        result = await validate_token(ProviderId.ANTHROPIC, "sk-ant-api-1")
        assert result.valid
        assert [m.id for m in result.models] == ["claude-opus-4"]
        assert http_client.get.call_args.kwargs["headers"]["x-api-key"] == "sk-ant-api-1"

    async def test_unauthorized(self, http_client):
        http_client.get.return_value = http_response(401)
        result = await validate_token(ProviderId.ANTHROPIC, "sk-ant-bad")
        assert not result.valid
        assert result.error == "invalid_token"

    async def test_models_endpoint_fallback(self, http_client):
        http_client.get.return_value = http_response(404)
        http_client.post.return_value = http_response(200, {})
        result = await validate_token(ProviderId.ANTHROPIC, "sk-ant-oat-1")
        assert result.valid
        assert [m.id for m in result.models] == [m.id for m in ANTHROPIC_FALLBACK_MODELS]

    async def test_network_error(self, http_client):
        http_client.get.side_effect = httpx.ConnectError("offline")
        result = await validate_token(ProviderId.ANTHROPIC, "sk-ant-1")
        assert result.error == "network_error"

    def test_oauth_headers(self):
        headers = anthropic_headers("sk-ant-oat01-abc")
        assert headers["Authorization"] == "Bearer sk-ant-oat01-abc"
        assert "x-api-key" not in headers
        assert "oauth" in headers["anthropic-beta"]


class TestOpenAI:
    async def test_filters_and_sorts(self, http_client):
        http_client.get.return_value = http_response(
            200,
            {
                "data": [
                    {"id": "o3", "created": 1_700_000_000},
                    {"id": "gpt-4o"},
                    {"id": "whisper-1"},
                    {"id": "dall-e-3"},
                ]
            },
        )
        result = await validate_token(ProviderId.OPENAI, "sk-proj-1")
        assert [m.id for m in result.models] == ["gpt-4o", "o3"]
        assert result.models[1].created_at.startswith("2023-11-14")

    async def test_unauthorized(self, http_client):
        http_client.get.return_value = http_response(401)
        result = await validate_token(ProviderId.OPENAI, "sk-bad")
        assert (result.valid, result.error) == (False, "invalid_token")

    async def test_server_error_uses_fallback(self, http_client):
        http_client.get.return_value = http_response(503)
        result = await validate_token(ProviderId.OPENAI, "sk-1")
        assert [m.id for m in result.models] == [m.id for m in OPENAI_API_FALLBACK_MODELS]

    async def test_network_failure_is_not_fallback(self, http_client):
        http_client.get.side_effect = httpx.ConnectTimeout("slow")
        result = await validate_token(ProviderId.OPENAI, "sk-1")
        assert (result.valid, result.error) == (False, "network_error")

    async def test_chatgpt_token_uses_codex_models(self, http_client):
        token = make_jwt({"https://api.openai.com/auth": {"chatgpt_account_id": "acct-7"}})
        http_client.get.return_value = http_response(
            200, {"models": [{"slug": "gpt-5", "display_name": "GPT-5"}]}
        )
        result = await validate_token(ProviderId.OPENAI, token)
        assert [m.id for m in result.models] == ["gpt-5"]
        headers = http_client.get.call_args.kwargs["headers"]
        assert headers["ChatGPT-Account-ID"] == "acct-7"

    async def test_chatgpt_404_uses_fallback(self, http_client):
        http_client.get.return_value = http_response(404)
        result = await validate_token(ProviderId.OPENAI, make_jwt({"sub": "x"}))
        assert [m.id for m in result.models] == [m.id for m in OPENAI_CHATGPT_FALLBACK_MODELS]


@pytest.mark.parametrize(
    ("model_id", "expected"),
    [
        ("claude-sonnet-4", 200_000),
        ("gpt-4o-mini", 128_000),
        ("gpt-5", 200_000),
        ("gpt-4", 8192),
        ("gpt-3.5-turbo", 16385),
        ("mystery", 100_000),
    ],
)
def test_context_window(model_id, expected):
    assert context_window(model_id) == expected
