"""FastAPI application factory for the Moodle Autopilot service."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import load_config
from ..core import StepRegistry
from .routes import router

logger = logging.getLogger(__name__)


# Global state
_start_time: float = 0.0


def get_uptime() -> float:
    """Get server uptime in seconds."""
    return time.time() - _start_time


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    global _start_time

    _start_time = time.time()
    logger.info(
        f"Moodle Autopilot service started "
        f"({len(StepRegistry.get_instance().list_types())} step types)"
    )

    yield

    # Shutdown (sessions are closed per request)


def create_app(
    title: str = "Moodle Autopilot",
    version: str = __version__,
    config: dict[str, Any] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    # Import steps to register them
    from .. import steps  # noqa: F401

    app = FastAPI(
        title=title,
        version=version,
        description="HTTP API for running Moodle automation workflows",
        lifespan=lifespan,
    )
    app.state.config = config or load_config()
    app.state.transport = transport

    # CORS for local development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routes
    app.include_router(router)

    return app
