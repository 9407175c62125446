"""Constructors that keep ``ErrorDetail`` categories and codes consistent."""

from __future__ import annotations

from typing import Mapping

from . import codes
from .types import ErrorCategory, ErrorDetail


def _detail(
    *,
    message: str,
    code: str,
    category: ErrorCategory,
    retryable: bool,
    metadata: Mapping[str, str] | None,
) -> ErrorDetail:
    return ErrorDetail(
        code=code,
        message=message,
        category=category,
        retryable=retryable,
        metadata={} if metadata is None else dict(metadata),
    )


def validation_error(
    message: str,
    *,
    code: str = codes.VALIDATION_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for malformed or out-of-range caller input."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.VALIDATION,
        retryable=False,
        metadata=metadata,
    )


def not_found_error(
    message: str,
    *,
    code: str = codes.NOT_FOUND,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for a lookup that matched nothing."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.NOT_FOUND,
        retryable=False,
        metadata=metadata,
    )


def conflict_error(
    message: str,
    *,
    code: str = codes.CONFLICT,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for a request that collides with current state."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.CONFLICT,
        retryable=False,
        metadata=metadata,
    )


def policy_error(
    message: str,
    *,
    code: str = codes.POLICY_VIOLATION,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for a request the active policy refuses."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.POLICY,
        retryable=False,
        metadata=metadata,
    )


def dependency_error(
    message: str,
    *,
    code: str = codes.DEPENDENCY_FAILURE,
    retryable: bool = True,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for a failing downstream store or provider."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.DEPENDENCY,
        retryable=retryable,
        metadata=metadata,
    )


def internal_error(
    message: str,
    *,
    code: str = codes.INTERNAL_ERROR,
    metadata: Mapping[str, str] | None = None,
) -> ErrorDetail:
    """Build an error for an unexpected fault inside the service."""
    return _detail(
        message=message,
        code=code,
        category=ErrorCategory.INTERNAL,
        retryable=False,
        metadata=metadata,
    )
