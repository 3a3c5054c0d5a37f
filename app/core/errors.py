"""
Failure taxonomy for credential persistence.

A missing remote file is not represented here: the GitHub client reports it
as ``None`` and the synchronizer treats it as a first write.
"""

from __future__ import annotations


class TokenStoreError(Exception):
    """Base class for every persistence failure surfaced to callers."""


class LocalIOError(TokenStoreError):
    """Raised when the local token file cannot be read or written."""


class MalformedStoreContent(TokenStoreError):
    """Raised when stored content is not a valid credential mapping."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f"Malformed credential mapping in {source}: {reason}")
        self.source = source
        self.reason = reason


class RemoteUnreachableError(TokenStoreError):
    """Raised on transport failures or timeouts talking to the remote store."""


class RemoteRejectedError(TokenStoreError):
    """Raised when the remote store answers with an unexpected status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(f"Remote store rejected request ({status_code}): {message}")
        self.status_code = status_code
        self.message = message


class SyncConflictError(TokenStoreError):
    """Raised when the remote content changed between fetch and upload."""


__all__ = [
    "LocalIOError",
    "MalformedStoreContent",
    "RemoteRejectedError",
    "RemoteUnreachableError",
    "SyncConflictError",
    "TokenStoreError",
]
