# Loopback authorization flow — PKCE helpers and a one-shot localhost
# redirect listener.
# Created: 2026-02-21
#
# The listener is a single-route FastAPI app served by uvicorn on a socket we
# bind ourselves, so a taken preferred port falls back to an ephemeral one
# instead of uvicorn exiting the process.

from __future__ import annotations

import asyncio
import base64
import hashlib
import logging
import secrets
import socket
import webbrowser
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse

from agentage.oauth.base import AuthFailed

logger = logging.getLogger(__name__)

_DONE_HTML = """<!doctype html><html><body style="font-family:sans-serif;text-align:center;padding:3em">
<h2>{title}</h2><p>{message}</p><p>You can close this window.</p></body></html>"""


@dataclass(frozen=True)
class PKCEPair:
    verifier: str
    challenge: str


def generate_pkce() -> PKCEPair:
    """Create an S256 PKCE verifier/challenge pair."""
    verifier = base64.urlsafe_b64encode(secrets.token_bytes(64)).rstrip(b"=").decode()
    digest = hashlib.sha256(verifier.encode()).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode()
    return PKCEPair(verifier=verifier, challenge=challenge)


def generate_state() -> str:
    return secrets.token_urlsafe(32)


def _bind_socket(host: str, ports: Sequence[int]) -> socket.socket:
    """Bind the first free port of *ports*, else any free port."""
    for port in [*ports, 0]:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            sock.close()
            if port:
                logger.debug("Callback port %d busy, trying next", port)
            continue
        sock.listen(8)
        return sock
    raise AuthFailed("No free local port for the authorization callback")


class LoopbackCallback:
    """Async context manager that listens for one redirect on localhost.

    Usage::

        async with LoopbackCallback("/auth/callback", ports=(1455,)) as cb:
            open_browser(build_url(cb.redirect_uri))
            params = await cb.wait(timeout=300)
    """

    def __init__(
        self,
        path: str = "/callback",
        *,
        ports: Sequence[int] = (),
        host: str = "127.0.0.1",
        redirect_host: str = "localhost",
    ):
        self.path = path
        self.ports = tuple(ports)
        self.host = host
        self.redirect_host = redirect_host
        self.port: int | None = None
        self._future: asyncio.Future[dict[str, str]] | None = None
        self._server: uvicorn.Server | None = None
        self._task: asyncio.Task | None = None

    @property
    def redirect_uri(self) -> str:
        return f"http://{self.redirect_host}:{self.port}{self.path}"

    def _build_app(self) -> FastAPI:
        app = FastAPI(docs_url=None, redoc_url=None, openapi_url=None)
        future = self._future

        @app.get(self.path, response_class=HTMLResponse)
        async def _callback(request: Request) -> HTMLResponse:
            params = dict(request.query_params)
            if future is not None and not future.done():
                future.set_result(params)
            if "error" in params:
                body = _DONE_HTML.format(
                    title="Authorization failed",
                    message=params.get("error_description") or params["error"],
                )
                return HTMLResponse(body, status_code=400)
            body = _DONE_HTML.format(title="Signed in", message="Return to Agentage.")
            return HTMLResponse(body)

        return app

    async def __aenter__(self) -> LoopbackCallback:
        self._future = asyncio.get_running_loop().create_future()
        sock = _bind_socket(self.host, self.ports)
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(
            self._build_app(), log_level="warning", lifespan="off", access_log=False
        )
        self._server = uvicorn.Server(config)
        self._task = asyncio.create_task(self._server.serve(sockets=[sock]))
        while not self._server.started:
            if self._task.done():
                sock.close()
                raise AuthFailed("Authorization callback server failed to start")
            await asyncio.sleep(0.01)
        logger.debug("OAuth callback listening on %s", self.redirect_uri)
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._task is not None:
            try:
                await asyncio.wait_for(self._task, timeout=5)
            except TimeoutError:
                self._task.cancel()
        if self._future is not None and not self._future.done():
            self._future.cancel()

    async def wait(self, timeout: float) -> dict[str, str]:
        assert self._future is not None, "LoopbackCallback used outside 'async with'"
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout=timeout)
        except TimeoutError:
            raise AuthFailed("Authorization timed out") from None


def check_callback(
    params: dict[str, str],
    *,
    expected_state: str | None = None,
    required: str = "code",
) -> str:
    """Validate redirect parameters and return the *required* value."""
    if "error" in params:
        raise AuthFailed(
            f"Authorization failed: {params.get('error_description') or params['error']}"
        )
    if expected_state is not None and params.get("state") != expected_state:
        raise AuthFailed("Authorization failed: state mismatch")
    value = params.get(required)
    if not value:
        raise AuthFailed(f"Authorization failed: no {required} received")
    return value


async def run_browser_flow(
    build_url: Callable[[str], str],
    *,
    path: str,
    ports: Sequence[int] = (),
    timeout: float = 300.0,
    opener: Callable[[str], bool] = webbrowser.open,
) -> tuple[dict[str, str], str]:
    """Open the browser at ``build_url(redirect_uri)`` and wait for the redirect.

    Returns the callback query parameters and the redirect URI that was used
    (token exchanges must repeat it).
    """
    async with LoopbackCallback(path, ports=ports) as cb:
        url = build_url(cb.redirect_uri)
        opened = await asyncio.to_thread(opener, url)
        if not opened:
            logger.warning("Could not open a browser; visit this URL to continue: %s", url)
        params = await cb.wait(timeout)
        return params, cb.redirect_uri
