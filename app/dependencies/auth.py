"""
Authorization gate for the admin token listing.

The policy is chosen with ``ADMIN_AUTH_MODE``; ``none`` disables the check and
has to be set explicitly.
"""

from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Query, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

from app.core.config import AppSettings

from .config import get_app_settings

logger = logging.getLogger(__name__)

_basic = HTTPBasic(realm="Restricted", auto_error=False)
_CHALLENGE = {"WWW-Authenticate": 'Basic realm="Restricted"'}


def _matches(supplied: str, expected: str | None) -> bool:
    if not expected:
        return False
    return secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8"))


def require_admin(
    settings: Annotated[AppSettings, Depends(get_app_settings)],
    credentials: Annotated[HTTPBasicCredentials | None, Depends(_basic)],
    athlete_id: str | None = Query(
        None, description="Admin athlete id, used when ADMIN_AUTH_MODE=athlete."
    ),
) -> None:
    """Reject the request unless it satisfies the configured admin policy."""
    admin = settings.admin
    if admin.auth_mode == "none":
        return

    if admin.auth_mode == "athlete":
        if athlete_id is None or not _matches(athlete_id, admin.athlete_id):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden.")
        return

    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers=_CHALLENGE,
        )
    if not admin.username or not admin.password:
        logger.warning("Admin basic auth requested but ADMIN_USER/ADMIN_PASS are not set")
    user_ok = _matches(credentials.username, admin.username)
    password_ok = _matches(credentials.password, admin.password)
    if not (user_ok and password_ok):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials.",
            headers=_CHALLENGE,
        )


__all__ = ["require_admin"]
