# OpenAI (ChatGPT account) OAuth adapter.
# Created: 2026-02-21

from __future__ import annotations

import logging
import urllib.parse

import httpx

from agentage.oauth.base import (
    AuthFailed,
    OAuthProvider,
    RefreshFailed,
    decode_jwt_claims,
    expires_at_from,
)
from agentage.oauth.callback import check_callback, generate_pkce, generate_state, run_browser_flow
from agentage.oauth.models import AuthorizationResult, OAuthProfile, OAuthTokens, ProviderId

logger = logging.getLogger(__name__)

CLIENT_ID = "app_EMoamEEZ73f0CkXaXp7hrann"
AUTHORIZE_URL = "https://auth.openai.com/oauth/authorize"
TOKEN_URL = "https://auth.openai.com/oauth/token"
CALLBACK_PATH = "/auth/callback"
CALLBACK_PORT = 1455
SCOPES = ["openid", "profile", "email", "offline_access"]
ACCOUNT_CLAIM = "https://api.openai.com/auth"


class OpenAIOAuthProvider(OAuthProvider):
    """Sign in with a ChatGPT account (PKCE authorization code flow)."""

    provider_id = ProviderId.OPENAI
    display_name = "OpenAI"
    description = "Use your ChatGPT subscription"

    def __init__(self, callback_timeout: float = 300.0):
        self.callback_timeout = callback_timeout

    def build_authorize_url(self, redirect_uri: str, challenge: str, state: str) -> str:
        params = {
            "response_type": "code",
            "client_id": CLIENT_ID,
            "redirect_uri": redirect_uri,
            "scope": " ".join(SCOPES),
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "id_token_add_organizations": "true",
            "codex_cli_simplified_flow": "true",
            "state": state,
            "originator": "codex_cli_rs",
        }
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    async def authorize(self) -> AuthorizationResult:
        pkce = generate_pkce()
        state = generate_state()
        params, redirect_uri = await run_browser_flow(
            lambda uri: self.build_authorize_url(uri, pkce.challenge, state),
            path=CALLBACK_PATH,
            ports=(CALLBACK_PORT,),
            timeout=self.callback_timeout,
        )
        code = check_callback(params, expected_state=state)
        tokens = await self.exchange_code(code, redirect_uri, pkce.verifier)
        profile = await self._profile_or_minimal(tokens)
        return AuthorizationResult(tokens=tokens, profile=profile)

    async def exchange_code(self, code: str, redirect_uri: str, verifier: str) -> OAuthTokens:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
            "client_id": CLIENT_ID,
            "code_verifier": verifier,
        }
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.post(TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise AuthFailed(f"Token exchange failed: {e}") from e
        if resp.status_code != 200:
            raise AuthFailed(f"Token exchange failed: HTTP {resp.status_code}")
        try:
            return self._parse_tokens(resp.json())
        except ValueError as e:
            raise AuthFailed(f"Malformed token response: {e}") from e

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": CLIENT_ID,
        }
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.post(TOKEN_URL, data=form)
        except httpx.HTTPError as e:
            raise RefreshFailed(f"Token refresh failed: {e}") from e
        if resp.status_code != 200:
            raise RefreshFailed(f"Token refresh failed: HTTP {resp.status_code}")
        try:
            return self._parse_tokens(resp.json(), previous_refresh=refresh_token)
        except ValueError as e:
            raise RefreshFailed(f"Malformed refresh response: {e}") from e

    async def fetch_profile(self, tokens: OAuthTokens) -> OAuthProfile:
        """Read the profile from the ID token claims; no network call."""
        claims = decode_jwt_claims(tokens.id_token or "")
        if not claims:
            return self.minimal_profile()
        account = claims.get(ACCOUNT_CLAIM) or {}
        profile_id = claims.get("sub") or account.get("chatgpt_account_id") or "unknown"
        return OAuthProfile(id=profile_id, email=claims.get("email"), name=claims.get("name"))

    def _parse_tokens(self, body: object, previous_refresh: str | None = None) -> OAuthTokens:
        if not isinstance(body, dict) or not body.get("access_token"):
            raise ValueError("no access token in response")
        scope = body.get("scope")
        return OAuthTokens(
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token") or previous_refresh,
            id_token=body.get("id_token"),
            expires_at=expires_at_from(body.get("expires_in")),
            scopes=scope.split() if isinstance(scope, str) else None,
        )
