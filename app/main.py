"""
FastAPI application entrypoint for the Drive token relay.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging
from app.dependencies import get_token_guard
from app.services import TokenLifecycleGuard

logger = logging.getLogger(__name__)


def _startup_lifespan(guard_factory: Callable[[], TokenLifecycleGuard]):
    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        """Attempt one credential load before serving requests."""
        if not await guard_factory().load_on_startup():
            logger.warning("Starting without credentials; visit /auth to authorize.")
        yield

    return lifespan


def create_app(
    guard_factory: Callable[[], TokenLifecycleGuard] = get_token_guard,
) -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Drive Token Relay",
        version="0.1.0",
        description="Relays Google Drive uploads and downloads with managed OAuth tokens.",
        lifespan=_startup_lifespan(guard_factory),
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(api_router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
