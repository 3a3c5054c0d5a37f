"""
Persistence of exchanged refresh tokens, locally and in the GitHub mirror.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol, Tuple

from app.clients.github_contents import GitHubContentsClient
from app.clients.local_store import LocalTokenStore
from app.core.errors import SyncConflictError, TokenStoreError
from app.models.credentials import (
    CredentialMapping,
    CredentialRecord,
    dump_mapping,
    parse_mapping,
)
from app.utils.http import RetryConfig

logger = logging.getLogger(__name__)


class TokenSyncService(Protocol):
    async def sync(
        self, *, user_id: str, display_name: str, refresh_credential: str
    ) -> CredentialMapping:
        ...

    async def snapshot(self) -> CredentialMapping:
        ...


class LocalTokenService:
    """Persist tokens to the local file only."""

    def __init__(self, store: LocalTokenStore, *, record_timestamps: bool = False) -> None:
        self._store = store
        self._record_timestamps = record_timestamps

    async def sync(
        self, *, user_id: str, display_name: str, refresh_credential: str
    ) -> CredentialMapping:
        record = CredentialRecord.build(
            display_name=display_name,
            refresh_credential=refresh_credential,
            stamp=self._record_timestamps,
        )
        return await self._store.upsert(
            user_id,
            record.display_name,
            record.refresh_credential,
            updated_at=record.updated_at,
        )

    async def snapshot(self) -> CredentialMapping:
        return await self._store.load()


class TokenMirrorService:
    """Merge a token into the mirrored mapping and push it to GitHub.

    Each attempt reads the remote file and its SHA, merges the new record into
    that content (or into the local file when the remote one does not exist
    yet), writes the result locally and uploads it with the SHA as
    precondition. A concurrent remote write therefore surfaces as
    ``SyncConflictError`` instead of being overwritten.
    """

    def __init__(
        self,
        store: LocalTokenStore,
        remote: GitHubContentsClient,
        *,
        retry_config: RetryConfig | None = None,
        record_timestamps: bool = False,
    ) -> None:
        self._store = store
        self._remote = remote
        self._retry = retry_config or RetryConfig()
        self._record_timestamps = record_timestamps
        self._lock = asyncio.Lock()

    async def fetch_remote(self) -> Tuple[Optional[CredentialMapping], Optional[str]]:
        """Return the remote mapping and its SHA, or ``(None, None)`` if absent."""
        remote_file = await self._remote.get_file()
        if remote_file is None:
            return None, None
        mapping = parse_mapping(remote_file.content, source=self._remote.location)
        return mapping, remote_file.sha

    async def sync(
        self, *, user_id: str, display_name: str, refresh_credential: str
    ) -> CredentialMapping:
        """Persist one record locally and remotely and return the merged mapping."""
        record = CredentialRecord.build(
            display_name=display_name,
            refresh_credential=refresh_credential,
            stamp=self._record_timestamps,
        )
        async with self._lock:
            attempt = 0
            while True:
                attempt += 1
                try:
                    return await self._sync_once(user_id, record)
                except SyncConflictError:
                    if attempt >= self._retry.attempts:
                        raise
                    delay = self._retry.delay_for(attempt)
                    logger.warning(
                        "Remote token file changed during sync; retrying in %.1fs",
                        delay,
                        extra={"user_id": user_id, "attempt": attempt},
                    )
                    await asyncio.sleep(delay)

    async def _sync_once(self, user_id: str, record: CredentialRecord) -> CredentialMapping:
        remote_mapping, sha = await self.fetch_remote()
        if remote_mapping is None:
            base = await self._store.load()
        else:
            base = remote_mapping

        merged = dict(base)
        merged[user_id] = record
        await self._store.save(merged)

        await self._remote.put_file(dump_mapping(merged), sha=sha)
        logger.info(
            "Saved refresh token locally and on GitHub",
            extra={"user_id": user_id, "created_file": sha is None},
        )
        return merged

    async def snapshot(self) -> CredentialMapping:
        """Remote mapping when one exists, otherwise the local copy."""
        remote_mapping, _ = await self.fetch_remote()
        if remote_mapping is None:
            return await self._store.load()
        return remote_mapping


async def persist_in_background(
    service: TokenSyncService,
    *,
    user_id: str,
    display_name: str,
    refresh_credential: str,
) -> None:
    """Run a sync after the response was sent, reporting the outcome in the log."""
    try:
        mapping = await service.sync(
            user_id=user_id,
            display_name=display_name,
            refresh_credential=refresh_credential,
        )
    except TokenStoreError as exc:
        logger.error(
            "Deferred refresh token persistence failed: %s",
            exc,
            extra={"user_id": user_id, "error": type(exc).__name__},
        )
        return
    logger.info(
        "Deferred refresh token persistence completed",
        extra={"user_id": user_id, "records": len(mapping)},
    )


__all__ = [
    "LocalTokenService",
    "TokenMirrorService",
    "TokenSyncService",
    "persist_in_background",
]
