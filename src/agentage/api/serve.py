"""API server for ``agentage serve``.

Mounts the versioned ``/api/v1/`` routers with CORS for the desktop shell.
The lifespan shuts every registered singleton down on exit.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

logger = logging.getLogger(__name__)

_BUILTIN_ORIGINS = [
    "tauri://localhost",
    "http://localhost:1420",
]


def create_api_app(cors_origins: list[str] | None = None):
    """Build the FastAPI application."""
    from fastapi import FastAPI
    from fastapi.middleware.cors import CORSMiddleware

    from agentage import __version__, lifecycle
    from agentage.api.v1 import mount_v1_routers
    from agentage.config import get_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await lifecycle.shutdown_all()

    app = FastAPI(
        title="Agentage API",
        description="Local desktop core — accounts, OAuth links, model providers and chat.",
        version=__version__,
        docs_url="/api/v1/docs",
        redoc_url="/api/v1/redoc",
        openapi_url="/api/v1/openapi.json",
        lifespan=lifespan,
    )

    # --- CORS -----------------------------------------------------------
    if cors_origins is None:
        cors_origins = get_settings().api_cors_allowed_origins
    origins = sorted(set(_BUILTIN_ORIGINS + cors_origins))

    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
    )

    mount_v1_routers(app)
    return app


def run_api_server(host: str = "127.0.0.1", port: int = 8765, dev: bool = False) -> None:
    """Start the API server."""
    import uvicorn

    from rich.console import Console

    console = Console(stderr=True)
    console.rule("AGENTAGE API SERVER")
    shown = "localhost" if host == "127.0.0.1" else host
    console.print(f"API docs: http://{shown}:{port}/api/v1/docs")

    if dev:
        import pathlib

        src_dir = str(pathlib.Path(__file__).resolve().parent.parent)
        uvicorn.run(
            "agentage.api.serve:create_api_app",
            factory=True,
            host=host,
            port=port,
            reload=True,
            reload_dirs=[src_dir],
            reload_includes=["*.py"],
            log_level="debug",
        )
    else:
        uvicorn.run(create_api_app(), host=host, port=port, log_config=None)
