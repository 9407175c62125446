"""Typed response envelope returned across service boundaries."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from packages.steward_shared.errors import ErrorDetail

from .meta import EnvelopeMeta

T = TypeVar("T")


class Payload(BaseModel, Generic[T]):
    """Wrapper so a ``None`` result is distinguishable from no payload."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    value: T


class Envelope(BaseModel, Generic[T]):
    """Metadata, optional payload and errors for one call.

    ``ok`` is the success flag; ``payload`` carries the data and ``errors``
    carries failure detail, so callers never need exceptions to tell a
    partial failure from a success.
    """

    model_config = ConfigDict(frozen=True)

    metadata: EnvelopeMeta
    payload: Payload[T] | None
    errors: list[ErrorDetail] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0

    @property
    def value(self) -> T | None:
        """Return the payload value, or ``None`` when no payload is present."""
        return None if self.payload is None else self.payload.value
