"""
Domain models for persisted Strava refresh tokens.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from app.core.errors import MalformedStoreContent


class CredentialRecord(BaseModel):
    """One athlete's entry in the credential mapping."""

    display_name: str = Field(
        ..., validation_alias=AliasChoices("display_name", "name")
    )
    # Records written by the first deployments used ``refresh_token``.
    refresh_credential: str = Field(
        ..., validation_alias=AliasChoices("refresh_credential", "refresh_token")
    )
    updated_at: Optional[datetime] = None

    @classmethod
    def build(
        cls, *, display_name: str, refresh_credential: str, stamp: bool = False
    ) -> "CredentialRecord":
        """Create a record, optionally stamped with the current UTC time."""
        return cls(
            display_name=display_name,
            refresh_credential=refresh_credential,
            updated_at=datetime.now(timezone.utc) if stamp else None,
        )


CredentialMapping = Dict[str, CredentialRecord]

_MAPPING_ADAPTER: TypeAdapter[CredentialMapping] = TypeAdapter(CredentialMapping)


def parse_mapping(raw: bytes, *, source: str) -> CredentialMapping:
    """Parse serialized content, rejecting it wholesale when any part is invalid."""
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as exc:
        raise MalformedStoreContent(source, f"invalid JSON ({exc})") from exc
    if not isinstance(payload, dict):
        raise MalformedStoreContent(
            source, f"expected a JSON object, found {type(payload).__name__}"
        )
    try:
        return _MAPPING_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise MalformedStoreContent(
            source, f"{exc.error_count()} invalid record field(s)"
        ) from exc


def dump_mapping(mapping: CredentialMapping) -> bytes:
    """Serialize the full mapping as indented UTF-8 JSON."""
    payload = {
        user_id: record.model_dump(mode="json", exclude_none=True)
        for user_id, record in mapping.items()
    }
    return json.dumps(payload, indent=2).encode("utf-8")


def mapping_to_dict(mapping: CredentialMapping) -> Dict[str, dict]:
    """Plain-dict view used for JSON responses."""
    return json.loads(dump_mapping(mapping))


__all__ = [
    "CredentialMapping",
    "CredentialRecord",
    "dump_mapping",
    "mapping_to_dict",
    "parse_mapping",
]
