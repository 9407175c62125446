"""Envelope contracts for Steward public APIs."""

from .builders import failure, success
from .envelope import Envelope, Payload
from .meta import (
    EnvelopeKind,
    EnvelopeMeta,
    new_meta,
    to_utc,
    utc_now,
    validate_meta,
)

__all__ = [
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "Payload",
    "failure",
    "new_meta",
    "success",
    "to_utc",
    "utc_now",
    "validate_meta",
]
