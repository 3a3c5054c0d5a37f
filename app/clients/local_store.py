"""JSON file-backed store for per-athlete refresh tokens."""

from __future__ import annotations

import asyncio
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Optional

from app.core.errors import LocalIOError, MalformedStoreContent
from app.models.credentials import (
    CredentialMapping,
    CredentialRecord,
    dump_mapping,
    parse_mapping,
)

logger = logging.getLogger(__name__)


class LocalTokenStore:
    """Read and rewrite the whole credential mapping held in a single file.

    A malformed file is never repaired or partially read: ``load`` raises
    ``MalformedStoreContent`` and leaves the file untouched for inspection.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def load(self) -> CredentialMapping:
        """Return the stored mapping, or an empty one when no file exists."""
        raw = await asyncio.to_thread(self._read_bytes)
        if raw is None:
            return {}
        try:
            return parse_mapping(raw, source=str(self._path))
        except MalformedStoreContent as exc:
            logger.error(
                "Local token store is corrupt: %s",
                exc.reason,
                extra={"path": str(self._path)},
            )
            raise

    async def save(self, mapping: CredentialMapping) -> None:
        """Atomically replace the file with the serialized mapping."""
        await asyncio.to_thread(self._write_bytes, dump_mapping(mapping))

    async def upsert(
        self,
        user_id: str,
        display_name: str,
        refresh_credential: str,
        *,
        updated_at: Optional[datetime] = None,
    ) -> CredentialMapping:
        """Insert or replace one record and persist the full mapping."""
        record = CredentialRecord(
            display_name=display_name,
            refresh_credential=refresh_credential,
            updated_at=updated_at,
        )
        async with self._lock:
            mapping = await self.load()
            mapping[user_id] = record
            await self.save(mapping)
        logger.info("Saved refresh token locally", extra={"user_id": user_id})
        return mapping

    def _read_bytes(self) -> bytes | None:
        try:
            return self._path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise LocalIOError(f"Cannot read token store {self._path}: {exc}") from exc

    def _write_bytes(self, data: bytes) -> None:
        directory = self._path.parent
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self._path.name}.", suffix=".tmp", dir=directory
            )
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(data)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp_name, self._path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise LocalIOError(f"Cannot write token store {self._path}: {exc}") from exc


__all__ = ["LocalTokenStore"]
