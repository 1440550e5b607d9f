# Shared fixtures.
# Created: 2026-02-21

import asyncio
import base64
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from agentage import lifecycle


def make_jwt(claims: dict) -> str:
    """Unsigned JWT carrying *claims* (signature is never checked)."""

    def _b64(data: dict) -> str:
        return base64.urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()

    return f"{_b64({'alg': 'none'})}.{_b64(claims)}.sig"


def http_response(status_code: int = 200, body=None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body if body is not None else {}
    return resp


WAIT = object()


class FakeTransport:
    """Plays scripted provider turns. The last script repeats once the others are used.

    A script item of ``WAIT`` blocks until ``gate`` is set; an exception is raised.
    """

    def __init__(self, *turns):
        self.turns = list(turns)
        self.requests = []
        self.gate = asyncio.Event()

    async def stream(self, turn):
        self.requests.append(turn)
        script = self.turns.pop(0) if len(self.turns) > 1 else self.turns[0]
        for item in script:
            if item is WAIT:
                await self.gate.wait()
            elif isinstance(item, BaseException):
                raise item
            else:
                yield item
            await asyncio.sleep(0)


@pytest.fixture
def http_client():
    """Patch ``httpx.AsyncClient``; configure ``.get`` / ``.post`` on the yielded mock."""
    with patch("httpx.AsyncClient") as mock_client_cls:
        mock_client = AsyncMock()
        mock_client.__aenter__ = AsyncMock(return_value=mock_client)
        mock_client.__aexit__ = AsyncMock(return_value=False)
        mock_client_cls.return_value = mock_client
        yield mock_client


@pytest.fixture(autouse=True)
def _reset_singletons():
    yield
    lifecycle.reset_all()


@pytest.fixture
def services(tmp_path):
    """A real service container rooted in a temporary config dir."""
    from agentage.config import Settings
    from agentage.services import AppServices

    return AppServices(Settings(config_dir=tmp_path, tool_abort_grace=0.1))


@pytest.fixture
def api_client(services):
    """TestClient for the full app with ``services`` injected.

    Used as a context manager so background chat tasks share one event loop
    across requests.
    """
    from fastapi.testclient import TestClient

    from agentage.api.deps import get_services
    from agentage.api.serve import create_api_app

    app = create_api_app(cors_origins=[])
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as client:
        yield client
