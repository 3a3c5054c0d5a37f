"""
Application configuration models and helpers.

Centralizes settings management so the HTTP layer, the token store and the
GitHub mirror share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

import os

from pydantic import AliasChoices, AnyHttpUrl, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the process env.

    Nested settings groups read ``os.environ`` directly, so the file has to be
    applied before any of them are instantiated.
    """
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class StravaSettings(BaseSettings):
    """Credentials and endpoints for the Strava OAuth application."""

    client_id: str = Field(..., validation_alias="STRAVA_CLIENT_ID")
    client_secret: str = Field(..., validation_alias="STRAVA_CLIENT_SECRET")
    redirect_uri: Optional[AnyHttpUrl] = Field(
        None,
        validation_alias="STRAVA_REDIRECT_URI",
        description="Redirect registered with the Strava app; used for the consent URL.",
    )
    scope: str = Field("read,activity:read_all", validation_alias="STRAVA_SCOPE")
    approval_prompt: Literal["auto", "force"] = Field(
        "auto", validation_alias="STRAVA_APPROVAL_PROMPT"
    )
    timeout_seconds: float = Field(10.0, validation_alias="STRAVA_TIMEOUT")


class GitHubSettings(BaseSettings):
    """Location and credentials of the GitHub mirror of the token file."""

    token: Optional[str] = Field(None, validation_alias="GITHUB_TOKEN")
    owner: Optional[str] = Field(None, validation_alias="GITHUB_USERNAME")
    repo: Optional[str] = Field(None, validation_alias="DATA_REPO")
    file_path: str = Field("tokens.json", validation_alias="DATA_FILE")
    branch: str = Field("main", validation_alias="GITHUB_BRANCH")
    api_base_url: str = Field("https://api.github.com", validation_alias="GITHUB_API_URL")
    timeout_seconds: float = Field(10.0, validation_alias="GITHUB_TIMEOUT")
    commit_message: str = Field(
        "Update tokens.json", validation_alias="GITHUB_COMMIT_MESSAGE"
    )

    @property
    def enabled(self) -> bool:
        """Mirroring only happens when every identifying setting is present."""
        return bool(self.token and self.owner and self.repo)

    @property
    def repository(self) -> str:
        return f"{self.owner}/{self.repo}"


class StorageSettings(BaseSettings):
    """Local credential file configuration."""

    tokens_file: str = Field(
        "tokens.json",
        validation_alias=AliasChoices("TOKEN_STORE_PATH", "DATA_FILE"),
    )
    record_timestamps: bool = Field(
        False,
        validation_alias="TOKEN_RECORD_TIMESTAMPS",
        description="Stamp each credential record with its last write time.",
    )


class PersistSettings(BaseSettings):
    """Ordering and conflict handling for credential persistence."""

    policy: Literal["synchronous", "deferred"] = Field(
        "synchronous",
        validation_alias="PERSIST_POLICY",
        description=(
            "synchronous: respond after the token is saved. "
            "deferred: respond first and save in a background task."
        ),
    )
    conflict_attempts: int = Field(1, ge=1, validation_alias="PERSIST_CONFLICT_ATTEMPTS")
    conflict_backoff_seconds: float = Field(
        0.5, ge=0, validation_alias="PERSIST_CONFLICT_BACKOFF"
    )

    @field_validator("policy", mode="before")
    @classmethod
    def _normalize_policy(cls, value: str) -> str:
        """Accept mixed-case values such as ``Deferred``."""
        if isinstance(value, str):
            return value.strip().lower()
        return value


class AdminSettings(BaseSettings):
    """Authorization policy for the token listing endpoint."""

    auth_mode: Literal["basic", "athlete", "none"] = Field(
        "basic", validation_alias="ADMIN_AUTH_MODE"
    )
    username: Optional[str] = Field(None, validation_alias="ADMIN_USER")
    password: Optional[str] = Field(None, validation_alias="ADMIN_PASS")
    athlete_id: Optional[str] = Field(None, validation_alias="ADMIN_ATHLETE_ID")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_url: Optional[str] = Field(
        None,
        validation_alias="FRONTEND_URL",
        description="Origin allowed by CORS. Any origin is allowed when unset.",
    )
    strava: StravaSettings = Field(default_factory=StravaSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    persist: PersistSettings = Field(default_factory=PersistSettings)
    admin: AdminSettings = Field(default_factory=AdminSettings)


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AdminSettings",
    "AppSettings",
    "GitHubSettings",
    "PersistSettings",
    "StorageSettings",
    "StravaSettings",
    "get_settings",
]
