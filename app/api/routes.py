"""
FastAPI routes for the Strava token relay.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from app.clients.strava import AthleteProfileError, OAuthTokenExchangeError
from app.core.errors import (
    LocalIOError,
    MalformedStoreContent,
    SyncConflictError,
    TokenStoreError,
)
from app.dependencies import (
    get_app_settings,
    get_strava_oauth_client,
    get_token_sync_service,
    require_admin,
)
from app.models.credentials import mapping_to_dict
from app.schemas import AuthorizationUrlResponse, ExchangeCodeResponse
from app.services import persist_in_background

router = APIRouter()
logger = logging.getLogger(__name__)

_NOT_SAVED = "Strava authorization succeeded but the refresh token could not be saved."


def _status_for(exc: TokenStoreError) -> HTTPStatus:
    if isinstance(exc, SyncConflictError):
        return HTTPStatus.CONFLICT
    if isinstance(exc, (LocalIOError, MalformedStoreContent)):
        return HTTPStatus.INTERNAL_SERVER_ERROR
    return HTTPStatus.BAD_GATEWAY


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck() -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok"}


@router.get("/auth/strava/authorize", status_code=HTTPStatus.OK)
async def start_strava_oauth_flow(
    request: Request,
    oauth_client: Annotated[Any, Depends(get_strava_oauth_client)],
    redirect: bool = Query(
        default=False,
        description="When true, respond with a redirect to the Strava consent screen.",
    ),
):
    """Return the Strava consent URL, or redirect browsers straight to it."""
    authorization_url = oauth_client.build_authorization_url()

    wants_html = "text/html" in request.headers.get("accept", "").lower()
    if redirect or wants_html:
        return RedirectResponse(url=authorization_url, status_code=HTTPStatus.TEMPORARY_REDIRECT)

    return AuthorizationUrlResponse(authorization_url=authorization_url)


@router.get("/exchange-code", response_model=ExchangeCodeResponse, status_code=HTTPStatus.OK)
async def exchange_code(
    background_tasks: BackgroundTasks,
    oauth_client: Annotated[Any, Depends(get_strava_oauth_client)],
    token_service: Annotated[Any, Depends(get_token_sync_service)],
    settings: Annotated[Any, Depends(get_app_settings)],
    code: str | None = Query(None, description="Authorization code returned by Strava."),
    error: str | None = Query(None, description="Error reported by Strava on denial."),
) -> ExchangeCodeResponse:
    """Exchange the code, look up the athlete and persist the refresh token."""
    if error:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=f"Authorization denied: {error}")
    if not code:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail="No code provided")

    try:
        access_token, refresh_token = await oauth_client.exchange_authorization_code(code)
    except OAuthTokenExchangeError as exc:
        raise HTTPException(status_code=HTTPStatus.BAD_REQUEST, detail=str(exc)) from exc

    try:
        athlete = await oauth_client.fetch_athlete(access_token)
    except AthleteProfileError as exc:
        logger.error("Athlete profile lookup failed: %s", exc)
        raise HTTPException(
            status_code=HTTPStatus.BAD_GATEWAY,
            detail="Could not load the Strava athlete profile.",
        ) from exc

    if settings.persist.policy == "deferred":
        background_tasks.add_task(
            persist_in_background,
            token_service,
            user_id=athlete.athlete_id,
            display_name=athlete.display_name,
            refresh_credential=refresh_token,
        )
        persistence = "scheduled"
    else:
        try:
            await token_service.sync(
                user_id=athlete.athlete_id,
                display_name=athlete.display_name,
                refresh_credential=refresh_token,
            )
        except TokenStoreError as exc:
            logger.error(
                "Refresh token persistence failed: %s",
                exc,
                extra={"user_id": athlete.athlete_id, "error": type(exc).__name__},
            )
            raise HTTPException(
                status_code=_status_for(exc),
                detail=f"{_NOT_SAVED} ({type(exc).__name__})",
            ) from exc
        persistence = "saved"

    return ExchangeCodeResponse(
        refresh_token=refresh_token,
        name=athlete.display_name,
        athlete_id=athlete.athlete_id,
        persistence=persistence,
    )


@router.get("/tokens", status_code=HTTPStatus.OK, dependencies=[Depends(require_admin)])
async def list_tokens(
    token_service: Annotated[Any, Depends(get_token_sync_service)],
) -> dict:
    """Return every stored credential record keyed by athlete id."""
    try:
        mapping = await token_service.snapshot()
    except TokenStoreError as exc:
        logger.error("Failed to read stored tokens: %s", exc)
        raise HTTPException(
            status_code=_status_for(exc),
            detail="Stored tokens are unavailable.",
        ) from exc
    return mapping_to_dict(mapping)
