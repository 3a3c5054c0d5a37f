"""Service layer exports."""

from .token_sync import (
    LocalTokenService,
    TokenMirrorService,
    TokenSyncService,
    persist_in_background,
)

__all__ = [
    "LocalTokenService",
    "TokenMirrorService",
    "TokenSyncService",
    "persist_in_background",
]
