"""Expose dependency helpers for FastAPI routers."""

from .auth import require_admin
from .clients import (
    get_github_contents_client,
    get_local_token_store,
    get_strava_oauth_client,
    get_token_sync_service,
)
from .config import get_app_settings

__all__ = [
    "get_app_settings",
    "get_github_contents_client",
    "get_local_token_store",
    "get_strava_oauth_client",
    "get_token_sync_service",
    "require_admin",
]
