"""Map SQLAlchemy failures onto shared error details."""

from __future__ import annotations

from sqlalchemy.exc import (
    IntegrityError,
    InterfaceError,
    OperationalError,
    ProgrammingError,
)

from packages.steward_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
)


def normalize_postgres_error(exc: Exception) -> ErrorDetail:
    """Classify one database exception as conflict, dependency or internal."""
    metadata = {"exception_type": type(exc).__name__}

    if isinstance(exc, IntegrityError):
        return conflict_error(
            "resource already exists", code=codes.ALREADY_EXISTS, metadata=metadata
        )
    if isinstance(exc, OperationalError):
        return dependency_error(
            "postgres unavailable",
            code=codes.DEPENDENCY_UNAVAILABLE,
            retryable=True,
            metadata=metadata,
        )
    if isinstance(exc, (InterfaceError, ProgrammingError)):
        return dependency_error(
            "postgres request failed",
            code=codes.DEPENDENCY_FAILURE,
            retryable=False,
            metadata=metadata,
        )
    return internal_error(
        "unexpected postgres failure",
        code=codes.UNEXPECTED_EXCEPTION,
        metadata=metadata,
    )
