# Token validation — calls a provider API and returns its model list.
# Created: 2026-02-21
#
# Never raises for an expected failure: bad credentials map to invalid_token,
# unreachable endpoints to network_error.

from __future__ import annotations

import logging
from datetime import UTC, datetime

import httpx

from agentage.catalog.models import ModelInfo, ValidateTokenResponse
from agentage.oauth.base import decode_jwt_claims
from agentage.oauth.models import ProviderId

logger = logging.getLogger(__name__)

ANTHROPIC_API = "https://api.anthropic.com"
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_OAUTH_PREFIX = "sk-ant-oat"
OPENAI_API = "https://api.openai.com/v1"
CHATGPT_MODELS_URL = "https://chatgpt.com/backend-api/codex/models"
CODEX_CLIENT_VERSION = "0.77.0"
OPENAI_MODEL_PREFIXES = ("gpt-", "o1", "o3", "o4")


def _models(*pairs: tuple[str, str]) -> list[ModelInfo]:
    return [ModelInfo(id=mid, display_name=name) for mid, name in pairs]


ANTHROPIC_FALLBACK_MODELS = _models(
    ("claude-opus-4-20250514", "Claude Opus 4"),
    ("claude-sonnet-4-20250514", "Claude Sonnet 4"),
    ("claude-3-7-sonnet-20250219", "Claude 3.7 Sonnet"),
    ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet"),
    ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku"),
    ("claude-3-opus-20240229", "Claude 3 Opus"),
    ("claude-3-haiku-20240307", "Claude 3 Haiku"),
)

OPENAI_CHATGPT_FALLBACK_MODELS = _models(
    *[
        (m, m)
        for m in (
            "gpt-5.2-codex",
            "gpt-5.1-codex-max",
            "gpt-5.1-codex-mini",
            "gpt-5.2",
            "gpt-5.1",
            "gpt-5",
            "o4-mini",
            "o3",
            "gpt-4.1",
            "gpt-4o",
        )
    ]
)

OPENAI_API_FALLBACK_MODELS = _models(
    *[
        (m, m)
        for m in (
            "gpt-4.1", "gpt-4o", "gpt-4o-mini", "o3", "o4-mini", "gpt-4-turbo", "gpt-3.5-turbo"
        )
    ]
)


def _fallback(models: list[ModelInfo]) -> ValidateTokenResponse:
    return ValidateTokenResponse(valid=True, models=[m.model_copy() for m in models])


def is_jwt(token: str) -> bool:
    return token.startswith("eyJ")


def anthropic_headers(token: str) -> dict[str, str]:
    headers = {"anthropic-version": ANTHROPIC_VERSION}
    if token.startswith(ANTHROPIC_OAUTH_PREFIX):
        headers["Authorization"] = f"Bearer {token}"
        headers["anthropic-beta"] = "oauth-2025-04-20"
    else:
        headers["x-api-key"] = token
    return headers


async def validate_token(provider: ProviderId, token: str) -> ValidateTokenResponse:
    """Check *token* against *provider* and fetch its current models.

    Raises:
        ValueError: *provider* is not a supported model provider.
    """
    if provider == ProviderId.OPENAI:
        validator = _validate_openai
    elif provider == ProviderId.ANTHROPIC:
        validator = _validate_anthropic
    else:
        raise ValueError(f"Unsupported model provider: {provider}")

    try:
        return await validator(token)
    except (httpx.HTTPError, ValueError) as e:
        logger.warning("Validating %s token failed: %s", provider.value, e)
        return ValidateTokenResponse(valid=False, error="network_error")


async def _validate_anthropic(token: str) -> ValidateTokenResponse:
    if is_jwt(token):
        return ValidateTokenResponse(valid=False, error="invalid_token")

    headers = anthropic_headers(token)
    async with httpx.AsyncClient(timeout=15) as client:
        resp = await client.get(f"{ANTHROPIC_API}/v1/models", headers=headers)
        if resp.status_code in (401, 403):
            return ValidateTokenResponse(valid=False, error="invalid_token")
        if resp.status_code == 200:
            models = [
                ModelInfo(
                    id=m["id"],
                    display_name=m.get("display_name") or m["id"],
                    created_at=m.get("created_at"),
                )
                for m in resp.json().get("data") or []
                if m.get("type") == "model"
            ]
            if models:
                return ValidateTokenResponse(valid=True, models=models)

        # Models endpoint unavailable: a one-token message still proves the key.
        resp = await client.post(
            f"{ANTHROPIC_API}/v1/messages",
            headers={**headers, "content-type": "application/json"},
            json={
                "model": "claude-3-haiku-20240307",
                "max_tokens": 1,
                "messages": [{"role": "user", "content": "Hi"}],
            },
        )
    if resp.status_code in (401, 403):
        return ValidateTokenResponse(valid=False, error="invalid_token")
    if resp.status_code in (200, 400, 429):
        return _fallback(ANTHROPIC_FALLBACK_MODELS)
    return ValidateTokenResponse(valid=False, error="network_error")


async def _validate_openai(token: str) -> ValidateTokenResponse:
    if is_jwt(token):
        return await _fetch_chatgpt_models(token)

    async with httpx.AsyncClient(timeout=15) as client:
        resp = await client.get(
            f"{OPENAI_API}/models", headers={"Authorization": f"Bearer {token}"}
        )
    if resp.status_code in (401, 403):
        return ValidateTokenResponse(valid=False, error="invalid_token")
    if resp.status_code != 200:
        return _fallback(OPENAI_API_FALLBACK_MODELS)

    models = []
    for m in resp.json().get("data") or []:
        if not m.get("id", "").startswith(OPENAI_MODEL_PREFIXES):
            continue
        created = m.get("created")
        models.append(
            ModelInfo(
                id=m["id"],
                display_name=m["id"],
                created_at=datetime.fromtimestamp(created, tz=UTC).isoformat() if created else None,
            )
        )
    models.sort(key=lambda m: m.id)
    return ValidateTokenResponse(valid=True, models=models) if models else _fallback(
        OPENAI_API_FALLBACK_MODELS
    )


async def _fetch_chatgpt_models(token: str) -> ValidateTokenResponse:
    claims = decode_jwt_claims(token)
    account_id = claims.get("acc") or (claims.get("https://api.openai.com/auth") or {}).get(
        "chatgpt_account_id"
    )
    headers = {
        "Authorization": f"Bearer {token}",
        "originator": "codex_cli_rs",
        "User-Agent": f"codex_cli_rs/{CODEX_CLIENT_VERSION}",
    }
    if account_id:
        headers["ChatGPT-Account-ID"] = account_id

    async with httpx.AsyncClient(timeout=15) as client:
        resp = await client.get(
            CHATGPT_MODELS_URL,
            params={"client_version": CODEX_CLIENT_VERSION},
            headers=headers,
        )
    if resp.status_code in (401, 403):
        return ValidateTokenResponse(valid=False, error="invalid_token")
    if resp.status_code != 200:
        # 404 is normal for some accounts
        return _fallback(OPENAI_CHATGPT_FALLBACK_MODELS)

    models = sorted(
        (
            ModelInfo(id=m["slug"], display_name=m.get("display_name") or m["slug"])
            for m in resp.json().get("models") or []
            if m.get("slug")
        ),
        key=lambda m: m.display_name,
    )
    return ValidateTokenResponse(valid=True, models=models) if models else _fallback(
        OPENAI_CHATGPT_FALLBACK_MODELS
    )


def context_window(model_id: str) -> int:
    """Best-known context window for a model id."""
    if model_id.startswith("claude"):
        return 200_000
    if "gpt-4o" in model_id or "gpt-4-turbo" in model_id or "gpt-4.1" in model_id:
        return 128_000
    if model_id.startswith("gpt-5") or model_id.startswith(("o1", "o3", "o4")):
        return 200_000
    if "gpt-4" in model_id:
        return 8192
    if "gpt-3.5" in model_id:
        return 16385
    return 100_000
