"""
GitHub contents API wrapper used to mirror the token file.

Reads return the decoded file plus its blob SHA. Writes send that SHA back so
GitHub rejects the update when the file changed in the meantime.
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Optional
from urllib.parse import quote

import httpx

from app.core.config import GitHubSettings
from app.core.errors import (
    MalformedStoreContent,
    RemoteRejectedError,
    RemoteUnreachableError,
    SyncConflictError,
)
from app.utils.http import error_message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RemoteFile:
    """Decoded file content and the SHA identifying that revision."""

    content: bytes
    sha: str


class GitHubContentsClient:
    """Fetch and conditionally update a single file in a GitHub repository."""

    def __init__(
        self,
        settings: GitHubSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if not settings.enabled:
            raise ValueError("GitHub mirroring requires GITHUB_TOKEN, GITHUB_USERNAME and DATA_REPO.")
        self._settings = settings
        self._transport = transport
        path = quote(settings.file_path.lstrip("/"))
        self._url = (
            f"{settings.api_base_url.rstrip('/')}/repos/{settings.repository}/contents/{path}"
        )

    @property
    def location(self) -> str:
        return f"{self._settings.repository}:{self._settings.branch}/{self._settings.file_path}"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {self._settings.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            },
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
        )

    def _json_object(self, response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError as exc:
            raise MalformedStoreContent(self.location, "response body is not JSON") from exc
        if not isinstance(payload, dict):
            # A directory listing comes back as a JSON array.
            raise MalformedStoreContent(
                self.location, f"expected a JSON object, found {type(payload).__name__}"
            )
        return payload

    async def get_file(self) -> RemoteFile | None:
        """Return the current file, or ``None`` when it does not exist yet."""
        try:
            async with self._client() as client:
                response = await client.get(self._url, params={"ref": self._settings.branch})
        except httpx.HTTPError as exc:
            raise RemoteUnreachableError(f"GET {self.location} failed: {exc!r}") from exc

        if response.status_code == HTTPStatus.NOT_FOUND:
            logger.info("No remote token file yet", extra={"location": self.location})
            return None
        if response.status_code != HTTPStatus.OK:
            raise RemoteRejectedError(response.status_code, error_message(response))

        payload = self._json_object(response)
        sha = payload.get("sha")
        encoded = payload.get("content")
        if not sha or not isinstance(encoded, str):
            raise MalformedStoreContent(self.location, "contents response lacks sha or content")
        try:
            # GitHub wraps the base64 payload at 60 columns.
            content = base64.b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise MalformedStoreContent(self.location, "content is not valid base64") from exc
        return RemoteFile(content=content, sha=sha)

    async def put_file(self, content: bytes, *, sha: str | None, message: str | None = None) -> str:
        """Create or update the file and return the SHA of the new revision.

        ``sha`` must be the revision the caller based its change on, or
        ``None`` to create the file.
        """
        body = {
            "message": message or self._settings.commit_message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self._settings.branch,
        }
        if sha is not None:
            body["sha"] = sha

        try:
            async with self._client() as client:
                response = await client.put(self._url, json=body)
        except httpx.HTTPError as exc:
            raise RemoteUnreachableError(f"PUT {self.location} failed: {exc!r}") from exc

        if response.status_code in (HTTPStatus.OK, HTTPStatus.CREATED):
            content_info = self._json_object(response).get("content")
            if not isinstance(content_info, dict) or not content_info.get("sha"):
                raise MalformedStoreContent(self.location, "write response lacks content sha")
            new_sha = content_info["sha"]
            logger.info(
                "Pushed token file to GitHub",
                extra={"location": self.location, "status_code": response.status_code},
            )
            return new_sha

        detail = error_message(response)
        if response.status_code == HTTPStatus.CONFLICT:
            raise SyncConflictError(f"{self.location} changed since it was read: {detail}")
        if (
            response.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
            and "sha" in detail.lower()
        ):
            # Sent when a create races with another writer that created the file first.
            raise SyncConflictError(f"{self.location} precondition failed: {detail}")
        raise RemoteRejectedError(response.status_code, detail)


__all__ = ["GitHubContentsClient", "RemoteFile"]
