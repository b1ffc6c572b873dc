"""
HTTP status endpoints served next to the websocket relay.

The app runs in its own uvicorn thread. ``/api/stats`` reads the relay's
counts without taking ``Registry.lock``: each count is a single ``len()``
on a dict or list, so it never sees a half-applied change to one
collection, but the counts are not a consistent snapshot of each other.
"""

from typing import Dict

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from RelayChat import __version__
from RelayChat.core.server.relay_server import RelayServer


class HealthResponse(BaseModel):
    status: str
    version: str
    running: bool


class StatsResponse(BaseModel):
    connected_users: int
    banned_users: int
    feature_requests: int
    open_connections: int


def create_app(relay: RelayServer) -> FastAPI:
    """
    Build the FastAPI application reporting on a relay.

    Args:
        relay: Relay whose state is reported

    Returns:
        FastAPI application
    """
    app = FastAPI(title="RelayChat", version=__version__)

    # Browser clients are served from anywhere during development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__, running=relay.is_running())

    @app.get("/api/stats", response_model=StatsResponse)
    async def stats() -> Dict[str, int]:
        return relay.stats()

    return app


def run(app: FastAPI, host: str = "0.0.0.0", port: int = 8081):
    """
    Run the FastAPI application with Uvicorn server.

    Args:
        app: Application to serve
        host: Host to bind to
        port: Port for the HTTP endpoints
    """
    uvicorn.run(app, host=host, port=port, log_config=None)
