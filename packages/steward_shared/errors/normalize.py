"""Fallback mapping from arbitrary exceptions to ``ErrorDetail``."""

from __future__ import annotations

from . import codes
from .factories import (
    dependency_error,
    internal_error,
    not_found_error,
    policy_error,
    validation_error,
)
from .types import ErrorDetail


def exception_to_error(exc: Exception) -> ErrorDetail:
    """Map a Python exception onto the shared error taxonomy.

    Services translate their own exception types first and only fall back to
    this generic mapping for everything else.
    """
    metadata = {"exception_type": type(exc).__name__}
    message = str(exc)

    if isinstance(exc, ValueError):
        return validation_error(message, code=codes.INVALID_ARGUMENT, metadata=metadata)
    if isinstance(exc, LookupError):
        return not_found_error(
            message, code=codes.RESOURCE_NOT_FOUND, metadata=metadata
        )
    if isinstance(exc, PermissionError):
        return policy_error(message, code=codes.PERMISSION_DENIED, metadata=metadata)
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return dependency_error(
            message or "dependency unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            metadata=metadata,
        )
    return internal_error(
        message or "unexpected exception",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
