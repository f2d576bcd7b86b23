"""Example FastAPI application served by ``shelf-run`` when no target is given.

Run it with::

    $ shelf-run
    $ curl http://localhost:8080/health
"""

from __future__ import annotations

import os

from fastapi import FastAPI
from pydantic import BaseModel, Field

from . import __version__


class HealthResponse(BaseModel):
    """Health check payload."""

    status: str = Field("healthy", description="Service health status")
    service: str = Field("shelf_run", description="Service name")
    version: str = Field(__version__, description="shelf_run version")
    pid: int = Field(..., description="Serving process id")


class GreetingResponse(BaseModel):
    message: str


def create_app() -> FastAPI:
    """Build the demo application."""
    app = FastAPI(
        title="shelf_run demo",
        description="Minimal application for trying out shelf_run",
        version=__version__,
    )

    @app.get("/", response_model=GreetingResponse)
    async def index() -> GreetingResponse:
        return GreetingResponse(message="Hello from shelf_run")

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(pid=os.getpid())

    return app
