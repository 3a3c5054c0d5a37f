"""
Strava OAuth utilities.

These helpers build the consent URL, exchange authorization codes and look up
the athlete a token belongs to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple
from urllib.parse import urlencode

import httpx

from fastapi import status

from app.core.config import StravaSettings
from app.utils.http import error_message


class OAuthTokenExchangeError(Exception):
    """Raised when the token endpoint does not return a refresh token."""


class AthleteProfileError(Exception):
    """Raised when the athlete profile cannot be fetched with a fresh token."""


@dataclass(frozen=True)
class AthleteProfile:
    athlete_id: str
    display_name: str


class StravaOAuthClient:
    """Build Strava authorization URLs and exchange authorization codes."""

    AUTH_BASE_URL = "https://www.strava.com/oauth/authorize"
    TOKEN_URL = "https://www.strava.com/oauth/token"
    ATHLETE_URL = "https://www.strava.com/api/v3/athlete"
    UNKNOWN_ATHLETE = "Unknown Athlete"

    def __init__(
        self,
        settings: StravaSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        )

    def build_authorization_url(self, state: str | None = None) -> str:
        """Construct the Strava OAuth consent URL."""
        params = {
            "client_id": self._settings.client_id,
            "response_type": "code",
            "approval_prompt": self._settings.approval_prompt,
            "scope": self._settings.scope,
        }
        if self._settings.redirect_uri is not None:
            params["redirect_uri"] = str(self._settings.redirect_uri)
        if state:
            params["state"] = state
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_authorization_code(self, code: str) -> Tuple[str, str]:
        """
        Exchange an authorization code for tokens.

        Returns a tuple of (access_token, refresh_token).
        """
        payload = {
            "client_id": self._settings.client_id,
            "client_secret": self._settings.client_secret,
            "code": code,
            "grant_type": "authorization_code",
        }

        try:
            async with self._client() as client:
                response = await client.post(self.TOKEN_URL, json=payload)
        except httpx.HTTPError as exc:
            raise OAuthTokenExchangeError(f"Strava token endpoint unreachable: {exc!r}") from exc

        try:
            token_payload = response.json()
        except ValueError:
            token_payload = {}

        access_token = token_payload.get("access_token")
        refresh_token = token_payload.get("refresh_token")
        if not refresh_token or not access_token:
            raise OAuthTokenExchangeError(
                token_payload.get("message") or "Failed to get refresh token"
            )

        return access_token, refresh_token

    async def fetch_athlete(self, access_token: str) -> AthleteProfile:
        """Return the id and display name of the token's athlete."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self.ATHLETE_URL,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise AthleteProfileError(f"Strava athlete endpoint unreachable: {exc!r}") from exc

        if response.status_code != status.HTTP_200_OK:
            raise AthleteProfileError(error_message(response))

        profile = response.json()
        athlete_id = profile.get("id")
        if athlete_id is None:
            raise AthleteProfileError("Athlete profile did not include an id.")

        first, last = profile.get("firstname"), profile.get("lastname")
        display_name = f"{first} {last}" if first and last else self.UNKNOWN_ATHLETE
        return AthleteProfile(athlete_id=str(athlete_id), display_name=display_name)


__all__ = [
    "AthleteProfile",
    "AthleteProfileError",
    "OAuthTokenExchangeError",
    "StravaOAuthClient",
]
