"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import GitHubContentsClient, LocalTokenStore, StravaOAuthClient
from app.core.config import get_settings
from app.services import LocalTokenService, TokenMirrorService, TokenSyncService
from app.utils.http import RetryConfig


@lru_cache()
def _settings():
    """Internal helper to cache settings for client factories."""
    return get_settings()


@lru_cache()
def get_strava_oauth_client() -> StravaOAuthClient:
    """Create a singleton Strava OAuth client."""
    return StravaOAuthClient(_settings().strava)


@lru_cache()
def get_local_token_store() -> LocalTokenStore:
    """Provide the process-wide local token file accessor."""
    return LocalTokenStore(_settings().storage.tokens_file)


@lru_cache()
def get_github_contents_client() -> GitHubContentsClient | None:
    """Provide the GitHub mirror client when mirroring is configured."""
    settings = _settings()
    if not settings.github.enabled:
        return None
    return GitHubContentsClient(settings.github)


@lru_cache()
def get_token_sync_service() -> TokenSyncService:
    """Mirror to GitHub when configured, otherwise keep tokens local only."""
    settings = _settings()
    store = get_local_token_store()
    remote = get_github_contents_client()
    if remote is None:
        return LocalTokenService(store, record_timestamps=settings.storage.record_timestamps)
    return TokenMirrorService(
        store,
        remote,
        retry_config=RetryConfig(
            attempts=settings.persist.conflict_attempts,
            backoff_seconds=settings.persist.conflict_backoff_seconds,
        ),
        record_timestamps=settings.storage.record_timestamps,
    )


__all__ = [
    "get_github_contents_client",
    "get_local_token_store",
    "get_strava_oauth_client",
    "get_token_sync_service",
]
