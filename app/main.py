"""
FastAPI application entrypoint for the Strava token relay.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import router as api_router
from app.core.config import get_settings
from app.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Strava Token Relay",
        version="0.1.0",
        description="Exchanges Strava OAuth codes and stores athlete refresh tokens.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.frontend_url or "*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(api_router, prefix="/api")
    return app


app = create_app()

__all__ = ["app", "create_app"]
