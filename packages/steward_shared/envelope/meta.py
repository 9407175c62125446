"""Correlation metadata attached to every public API call and response."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from packages.steward_shared.ids import generate_ulid_str


class EnvelopeKind(str, Enum):
    """Intent of the call an envelope belongs to."""

    UNSPECIFIED = "unspecified"
    COMMAND = "command"
    EVENT = "event"
    RESULT = "result"


class EnvelopeMeta(BaseModel):
    """Identity, lineage and principal for one call."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    envelope_id: str
    trace_id: str
    parent_id: str = ""
    timestamp: datetime
    kind: EnvelopeKind
    source: str
    principal: str


class _RequiredMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    envelope_id: str = Field(min_length=1)
    trace_id: str = Field(min_length=1)
    parent_id: str
    timestamp: datetime
    kind: EnvelopeKind
    source: str = Field(min_length=1)
    principal: str = Field(min_length=1)


def new_meta(
    *,
    kind: EnvelopeKind,
    source: str,
    principal: str,
    trace_id: str | None = None,
    parent_id: str = "",
    envelope_id: str | None = None,
    timestamp: datetime | None = None,
) -> EnvelopeMeta:
    """Build metadata, generating ids and a UTC timestamp when omitted."""
    return EnvelopeMeta(
        envelope_id=envelope_id or generate_ulid_str(),
        trace_id=trace_id or generate_ulid_str(),
        parent_id=parent_id,
        timestamp=utc_now() if timestamp is None else to_utc(timestamp),
        kind=kind,
        source=source,
        principal=principal,
    )


def validate_meta(meta: EnvelopeMeta) -> None:
    """Raise ``ValueError`` naming the first missing or unusable field."""
    if meta.kind == EnvelopeKind.UNSPECIFIED:
        raise ValueError("metadata.kind must be specified")
    try:
        _RequiredMeta.model_validate(meta.model_dump(mode="python"))
    except ValidationError as exc:
        location = exc.errors()[0].get("loc", ())
        field_name = str(location[0]) if location else "metadata"
        raise ValueError(f"metadata.{field_name} is required") from None


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def to_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
