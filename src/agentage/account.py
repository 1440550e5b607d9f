# Account session — the signed-in agentage user, stored in config.json.
# Created: 2026-02-21
#
# Separate from provider links: this is the primary identity behind
# auth.login / auth.logout / auth.getUser.

from __future__ import annotations

import logging
import urllib.parse
from datetime import UTC, datetime, timedelta

import httpx

from agentage.oauth.base import AuthFailed, decode_jwt_claims
from agentage.oauth.callback import check_callback, run_browser_flow
from agentage.storage.app_settings import AccountAuth, AccountStore, AccountUser
from agentage.storage.documents import CamelModel

logger = logging.getLogger(__name__)

CALLBACK_PATH = "/callback"
CALLBACK_PORTS = (3739, 3740, 3741)
REFRESH_THRESHOLD = timedelta(minutes=5)


class AuthResult(CamelModel):
    success: bool
    user: AccountUser | None = None
    error: str | None = None


def _expiry_from_token(token: str) -> str | None:
    exp = decode_jwt_claims(token).get("exp")
    if not isinstance(exp, int | float):
        return None
    return datetime.fromtimestamp(exp, tz=UTC).isoformat()


def _parse_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


class AccountService:
    """Desktop login against the agentage backend."""

    def __init__(self, store: AccountStore, backend_url: str, callback_timeout: float = 300.0):
        self.store = store
        self.default_backend_url = backend_url.rstrip("/")
        self.callback_timeout = callback_timeout

    async def backend_url(self) -> str:
        config = await self.store.load()
        if config.registry and config.registry.url:
            return config.registry.url.rstrip("/")
        return self.default_backend_url

    async def login(self) -> AuthResult:
        base = await self.backend_url()

        def _login_url(redirect_uri: str) -> str:
            query = urllib.parse.urlencode({"callback": redirect_uri})
            return f"{base}/desktop-login?{query}"

        try:
            params, _ = await run_browser_flow(
                _login_url,
                path=CALLBACK_PATH,
                ports=CALLBACK_PORTS,
                timeout=self.callback_timeout,
            )
            token = check_callback(params, required="token")
            user = await self._fetch_user(base, token)
        except (AuthFailed, httpx.HTTPError, ValueError) as e:
            logger.warning("Login failed: %s", e)
            return AuthResult(success=False, error=str(e))

        await self.store.set_auth(
            AccountAuth(token=token, expires_at=_expiry_from_token(token), user=user)
        )
        logger.info("Logged in as %s", user.email)
        return AuthResult(success=True, user=user)

    async def logout(self) -> None:
        config = await self.store.load()
        if config.auth is not None:
            await self.store.set_auth(None)
            logger.info("Logged out")

    async def get_user(self) -> AccountUser | None:
        """Current user, or None when signed out or the session has expired."""
        if not await self.refresh_if_needed():
            return None
        config = await self.store.load()
        if config.auth is None:
            return None
        expires = _parse_iso(config.auth.expires_at)
        if expires is not None and expires <= datetime.now(UTC):
            await self.logout()
            return None
        return config.auth.user

    async def refresh_if_needed(self) -> bool:
        """Refresh a session close to expiry. Returns False when signed out."""
        config = await self.store.load()
        auth = config.auth
        if auth is None:
            return False
        expires = _parse_iso(auth.expires_at)
        if expires is None or expires - datetime.now(UTC) > REFRESH_THRESHOLD:
            return True

        base = await self.backend_url()
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.post(
                    f"{base}/api/auth/refresh",
                    headers={"Authorization": f"Bearer {auth.token}"},
                )
            if resp.status_code != 200:
                raise AuthFailed(f"HTTP {resp.status_code}")
            body = resp.json()
            token = body.get("token") if isinstance(body, dict) else None
            if not token:
                raise AuthFailed("no token in refresh response")
        except (AuthFailed, httpx.HTTPError, ValueError) as e:
            logger.warning("Session refresh failed, logging out: %s", e)
            await self.logout()
            return False

        await self.store.set_auth(
            AccountAuth(token=token, expires_at=_expiry_from_token(token), user=auth.user)
        )
        logger.info("Session refreshed")
        return True

    async def _fetch_user(self, base: str, token: str) -> AccountUser:
        async with httpx.AsyncClient(timeout=15) as client:
            resp = await client.get(
                f"{base}/api/auth/me", headers={"Authorization": f"Bearer {token}"}
            )
        if resp.status_code != 200:
            raise AuthFailed(f"Fetching user info failed: HTTP {resp.status_code}")
        try:
            body = resp.json()
        except ValueError as e:
            raise AuthFailed(f"Malformed user info response: {e}") from e
        if not isinstance(body, dict):
            raise AuthFailed("Malformed user info response")
        # ValidationError is a ValueError; login reports it as a failed result
        return AccountUser.model_validate(body.get("user", body))
