"""Shorthand constructors for success and failure envelopes."""

from __future__ import annotations

from typing import Iterable, TypeVar

from packages.steward_shared.errors import ErrorDetail

from .envelope import Envelope, Payload
from .meta import EnvelopeMeta

T = TypeVar("T")


def success(*, meta: EnvelopeMeta, payload: T) -> Envelope[T]:
    """Wrap one payload in an error-free envelope."""
    return Envelope[T](metadata=meta, payload=Payload[T](value=payload), errors=[])


def failure(
    *,
    meta: EnvelopeMeta,
    errors: Iterable[ErrorDetail],
) -> Envelope[T]:
    """Build a payload-less envelope carrying one or more errors."""
    return Envelope[T](metadata=meta, payload=None, errors=list(errors))
