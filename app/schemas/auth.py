"""Schemas related to the Strava OAuth flow."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class AuthorizationUrlResponse(BaseModel):
    """Consent URL returned to clients that do not follow redirects."""

    authorization_url: str


class ExchangeCodeResponse(BaseModel):
    """Result of a completed code exchange."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(..., description="Refresh token issued by Strava.")
    name: str = Field(..., description="Athlete display name.")
    athlete_id: str = Field(..., alias="athleteId", description="Strava athlete id.")
    persistence: Literal["saved", "scheduled"] = Field(
        ...,
        description="Whether the token was stored before responding or queued for storage.",
    )


__all__ = ["AuthorizationUrlResponse", "ExchangeCodeResponse"]
