# Anthropic (Claude account) OAuth adapter.
# Created: 2026-02-21

from __future__ import annotations

import logging
import urllib.parse

import httpx

from agentage.oauth.base import AuthFailed, OAuthProvider, RefreshFailed, expires_at_from
from agentage.oauth.callback import check_callback, generate_pkce, generate_state, run_browser_flow
from agentage.oauth.models import AuthorizationResult, OAuthProfile, OAuthTokens, ProviderId

logger = logging.getLogger(__name__)

CLIENT_ID = "9d1c250a-e61b-44d9-88ed-5944d1962f5e"
AUTHORIZE_URL = "https://claude.ai/oauth/authorize"
TOKEN_URL = "https://console.anthropic.com/v1/oauth/token"
PROFILE_URL = "https://api.anthropic.com/api/oauth/profile"
CALLBACK_PATH = "/callback"
SCOPES = ["org:create_api_key", "user:profile", "user:inference"]
OAUTH_BETA = "oauth-2025-04-20"


class AnthropicOAuthProvider(OAuthProvider):
    """Sign in with a Claude account (PKCE authorization code flow)."""

    provider_id = ProviderId.ANTHROPIC
    display_name = "Claude"
    description = "Use your Claude Pro or Max subscription"

    def __init__(self, callback_timeout: float = 300.0):
        self.callback_timeout = callback_timeout

    def build_authorize_url(self, redirect_uri: str, challenge: str, state: str) -> str:
        params = {
            "code": "true",
            "client_id": CLIENT_ID,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": " ".join(SCOPES),
            "code_challenge": challenge,
            "code_challenge_method": "S256",
            "state": state,
        }
        return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"

    async def authorize(self) -> AuthorizationResult:
        pkce = generate_pkce()
        state = generate_state()
        params, redirect_uri = await run_browser_flow(
            lambda uri: self.build_authorize_url(uri, pkce.challenge, state),
            path=CALLBACK_PATH,
            timeout=self.callback_timeout,
        )
        code = check_callback(params, expected_state=state)
        tokens = await self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "state": state,
                "client_id": CLIENT_ID,
                "redirect_uri": redirect_uri,
                "code_verifier": pkce.verifier,
            },
            error_cls=AuthFailed,
        )
        profile = await self._profile_or_minimal(tokens)
        return AuthorizationResult(tokens=tokens, profile=profile)

    async def refresh_token(self, refresh_token: str) -> OAuthTokens:
        tokens = await self._token_request(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": CLIENT_ID,
            },
            error_cls=RefreshFailed,
        )
        if tokens.refresh_token is None:
            tokens.refresh_token = refresh_token
        return tokens

    async def fetch_profile(self, tokens: OAuthTokens) -> OAuthProfile:
        headers = {
            "Authorization": f"Bearer {tokens.access_token}",
            "anthropic-beta": OAUTH_BETA,
        }
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.get(PROFILE_URL, headers=headers)
        if resp.status_code != 200:
            return self.minimal_profile()
        account = resp.json().get("account") or {}
        return OAuthProfile(
            id=account.get("uuid") or "claude-user",
            email=account.get("email_address") or account.get("email"),
            name=account.get("full_name") or account.get("display_name"),
        )

    def minimal_profile(self) -> OAuthProfile:
        return OAuthProfile(id="claude-user", name="Claude User")

    async def _token_request(self, body: dict, *, error_cls: type[Exception]) -> OAuthTokens:
        try:
            async with httpx.AsyncClient(timeout=30) as client:
                resp = await client.post(TOKEN_URL, json=body)
        except httpx.HTTPError as e:
            raise error_cls(f"Token request failed: {e}") from e
        if resp.status_code != 200:
            raise error_cls(f"Token request failed: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise error_cls(f"Malformed token response: {e}") from e
        if not isinstance(data, dict):
            raise error_cls("Malformed token response")
        if not data.get("access_token"):
            raise error_cls("Token response did not include an access token")
        scope = data.get("scope")
        return OAuthTokens(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at_from(data.get("expires_in")),
            scopes=scope.split() if isinstance(scope, str) else None,
        )
