"""Typed failures raised by the Authority Engine."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from packages.steward_shared.errors import (
    ErrorDetail,
    codes,
    conflict_error,
    dependency_error,
    internal_error,
    not_found_error,
    policy_error,
)


class AuthorityEngineError(Exception):
    """Base class for engine failures that map onto one ``ErrorDetail``."""

    def to_error_detail(self) -> ErrorDetail:
        return internal_error(str(self))


class UnknownActionType(AuthorityEngineError):
    """Requested action type name is not in the registry."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown action type: {name}")
        self.name = name

    def to_error_detail(self) -> ErrorDetail:
        return not_found_error(
            str(self),
            code=codes.RESOURCE_NOT_FOUND,
            metadata={"action_type": self.name},
        )


class ActionLogNotFound(AuthorityEngineError):
    """No action log with this id is visible to the requesting user."""

    def __init__(self, action_log_id: str) -> None:
        super().__init__(f"Action log not found: {action_log_id}")
        self.action_log_id = action_log_id

    def to_error_detail(self) -> ErrorDetail:
        return not_found_error(
            str(self),
            code=codes.RESOURCE_NOT_FOUND,
            metadata={"action_log_id": self.action_log_id},
        )


class InvalidStateTransition(AuthorityEngineError):
    """Action log is not in a status the requested operation accepts."""

    def __init__(
        self,
        *,
        action_log_id: str,
        current_status: str,
        expected: Iterable[str],
        operation: str,
    ) -> None:
        self.action_log_id = action_log_id
        self.current_status = current_status
        self.expected = tuple(expected)
        self.operation = operation
        super().__init__(
            f"Cannot {operation} action log {action_log_id} in status "
            f"{current_status}; expected {' or '.join(self.expected)}"
        )

    def to_error_detail(self) -> ErrorDetail:
        return conflict_error(
            str(self),
            metadata={
                "action_log_id": self.action_log_id,
                "current_status": self.current_status,
                "expected": ",".join(self.expected),
                "operation": self.operation,
            },
        )


class IrreversibleAction(AuthorityEngineError):
    """Reversal requested for an action type that cannot be undone."""

    def __init__(self, *, action_log_id: str, action_type_name: str) -> None:
        super().__init__(f"Action type {action_type_name} is not reversible")
        self.action_log_id = action_log_id
        self.action_type_name = action_type_name

    def to_error_detail(self) -> ErrorDetail:
        return policy_error(
            str(self),
            metadata={
                "action_log_id": self.action_log_id,
                "action_type": self.action_type_name,
            },
        )


class ExecutionFailure(AuthorityEngineError):
    """Caller-supplied executor reported failure or raised."""

    def __init__(self, *, action_log_id: str, message: str) -> None:
        super().__init__(message)
        self.action_log_id = action_log_id

    def to_error_detail(self) -> ErrorDetail:
        return dependency_error(
            str(self),
            retryable=False,
            metadata={"action_log_id": self.action_log_id},
        )


class PersistenceError(AuthorityEngineError):
    """Underlying store failed; carries the normalized store error."""

    def __init__(self, *, operation: str, detail: ErrorDetail) -> None:
        super().__init__(f"{operation} failed: {detail.message}")
        self.operation = operation
        self.detail = detail

    def to_error_detail(self) -> ErrorDetail:
        return self.detail


class ExecutionAlreadyClaimed(AuthorityEngineError):
    """Another caller already started executing this action log."""

    def __init__(self, *, action_log_id: str, claimed_at: datetime | None) -> None:
        super().__init__(f"Action log {action_log_id} is already being executed")
        self.action_log_id = action_log_id
        self.claimed_at = claimed_at

    def to_error_detail(self) -> ErrorDetail:
        metadata = {"action_log_id": self.action_log_id}
        if self.claimed_at is not None:
            metadata["claimed_at"] = self.claimed_at.isoformat()
        return conflict_error(str(self), metadata=metadata)
