"""Action log state machine.

Legal transitions::

    pending_approval -> approved | rejected
    approved         -> executed | failed
    executed         -> reversed

Every write is guarded on the status read just before it, so of two racing
transitions on one log only the first succeeds; the other gets
``InvalidStateTransition``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any

from pydantic import ValidationError

from packages.steward_shared.logging import fields, get_logger, log_context
from services.action.authority_engine.domain import (
    ActionLog,
    ActionLogFilter,
    ActionLogWithType,
    ActionStats,
    ActionStatus,
    BatchApprovalResult,
    BatchRejectionResult,
    ExecutionReport,
    ExecutionResult,
    ReversedBy,
    TargetType,
    UserFeedback,
    utc_now,
)
from services.action.authority_engine.errors import (
    ActionLogNotFound,
    AuthorityEngineError,
    ExecutionAlreadyClaimed,
    ExecutionFailure,
    InvalidStateTransition,
    IrreversibleAction,
)
from services.action.authority_engine.interfaces import AuthorityRepository
from services.action.authority_engine.registry import ActionTypeRegistry

_LOGGER = get_logger(__name__)

ActionExecutor = Callable[[], ExecutionReport | Mapping[str, Any] | None]

_EXECUTABLE: tuple[ActionStatus, ...] = ("approved", "pending_approval")
_UNKNOWN_EXECUTION_ERROR = "Unknown error"


class ActionLogStateMachine:
    """Named transitions and queries over persisted action logs."""

    def __init__(
        self,
        *,
        repository: AuthorityRepository,
        registry: ActionTypeRegistry,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._clock = clock

    def get(self, action_log_id: str, *, user_id: str | None = None) -> ActionLog:
        """Return one log, hiding logs owned by other users."""
        log = self._repository.get_action_log(action_log_id=action_log_id)
        if log is None or (user_id is not None and log.user_id != user_id):
            raise ActionLogNotFound(action_log_id)
        return log

    def approve(
        self,
        action_log_id: str,
        *,
        edited_content: str | None = None,
        user_id: str | None = None,
    ) -> ActionLog:
        log = self.get(action_log_id, user_id=user_id)
        update: dict[str, Any] = {"status": "approved", "approved_at": self._clock()}
        if edited_content:
            update["metadata"] = log.metadata.model_copy(
                update={"edited_content": edited_content}
            )
        return self._transition(
            log, expected=("pending_approval",), operation="approve", update=update
        )

    def reject(
        self,
        action_log_id: str,
        *,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> ActionLog:
        log = self.get(action_log_id, user_id=user_id)
        update: dict[str, Any] = {"status": "rejected", "rejected_at": self._clock()}
        if reason:
            update["metadata"] = log.metadata.model_copy(
                update={"rejection_reason": reason}
            )
        return self._transition(
            log, expected=("pending_approval",), operation="reject", update=update
        )

    def execute(
        self,
        action_log_id: str,
        executor: ActionExecutor,
        *,
        user_id: str | None = None,
    ) -> ExecutionResult:
        """Run ``executor`` once and record ``executed`` or ``failed``.

        The log is claimed with a status-guarded write before the executor
        runs, so of two concurrent calls only one invokes it; the other raises
        ``ExecutionAlreadyClaimed``. A call on an executed log raises
        ``InvalidStateTransition``. ``pending_approval`` is tolerated but
        logged; callers should approve first.

        The executor may return an ``ExecutionReport`` or a mapping with
        ``success`` and optional ``error``. Anything else is recorded as a
        failure.
        """
        log = self.get(action_log_id, user_id=user_id)
        self._require_executable(log)
        claimed_at = self._clock()
        if not self._repository.claim_execution(
            action_log_id=log.id, expected_statuses=_EXECUTABLE, claimed_at=claimed_at
        ):
            current = self.get(action_log_id, user_id=user_id)
            self._require_executable(current)
            raise ExecutionAlreadyClaimed(
                action_log_id=log.id,
                claimed_at=current.execution_started_at,
            )
        log = self.get(action_log_id, user_id=user_id)
        if log.status == "pending_approval":
            with log_context({fields.ACTION_LOG_ID: log.id}):
                _LOGGER.warning("Executing action that was never approved")

        try:
            report = ExecutionReport.model_validate(executor())
        except ValidationError as exc:
            report = ExecutionReport(
                success=False,
                error=f"Executor returned an invalid report: {exc.error_count()} error(s)",
            )
        except Exception as exc:  # noqa: BLE001
            report = ExecutionReport(success=False, error=str(exc) or type(exc).__name__)

        if report.success:
            executed = self._transition(
                log,
                expected=(log.status,),
                operation="execute",
                update={"status": "executed", "executed_at": self._clock()},
            )
            return ExecutionResult(success=True, action_log=executed)

        failure = ExecutionFailure(
            action_log_id=log.id, message=report.error or _UNKNOWN_EXECUTION_ERROR
        )
        failed = self._transition(
            log,
            expected=(log.status,),
            operation="execute",
            update={
                "status": "failed",
                "metadata": log.metadata.model_copy(
                    update={"failure_reason": str(failure)}
                ),
            },
        )
        with log_context({fields.ACTION_LOG_ID: log.id, "failure_reason": str(failure)}):
            _LOGGER.warning("Action execution failed")
        return ExecutionResult(
            success=False,
            action_log=failed,
            error=str(failure),
            errors=(failure.to_error_detail(),),
        )

    def reverse(
        self,
        action_log_id: str,
        *,
        reversed_by: ReversedBy,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> ActionLog:
        """Mark an executed, reversible action as reversed."""
        log = self.get(action_log_id, user_id=user_id)
        action_type = self._registry.require_id(log.action_type_id)
        if not action_type.reversible:
            raise IrreversibleAction(
                action_log_id=log.id, action_type_name=action_type.name
            )
        metadata = log.metadata.model_copy(
            update={
                "reversed_at": self._clock(),
                "reversed_by": reversed_by,
                "reversal_reason": reason,
            }
        )
        return self._transition(
            log,
            expected=("executed",),
            operation="reverse",
            update={"status": "reversed", "metadata": metadata},
        )

    def add_feedback(
        self,
        action_log_id: str,
        feedback: UserFeedback,
        *,
        user_id: str | None = None,
    ) -> ActionLog:
        """Attach advisory feedback in any status."""
        self.get(action_log_id, user_id=user_id)
        updated = self._repository.set_feedback(
            action_log_id=action_log_id, feedback=feedback
        )
        if updated is None:
            raise ActionLogNotFound(action_log_id)
        return updated

    def batch_approve(
        self, action_log_ids: Iterable[str], *, user_id: str | None = None
    ) -> BatchApprovalResult:
        """Approve each id independently; failures never stop the batch."""
        approved = 0
        failed_ids: list[str] = []
        for action_log_id in action_log_ids:
            try:
                self.approve(action_log_id, user_id=user_id)
            except AuthorityEngineError as exc:
                failed_ids.append(action_log_id)
                _log_batch_failure("approve", action_log_id, exc)
                continue
            approved += 1
        return BatchApprovalResult(
            approved=approved, failed=len(failed_ids), failed_ids=tuple(failed_ids)
        )

    def batch_reject(
        self,
        action_log_ids: Iterable[str],
        *,
        reason: str | None = None,
        user_id: str | None = None,
    ) -> BatchRejectionResult:
        """Reject each id independently; failures never stop the batch."""
        rejected = 0
        failed_ids: list[str] = []
        for action_log_id in action_log_ids:
            try:
                self.reject(action_log_id, reason=reason, user_id=user_id)
            except AuthorityEngineError as exc:
                failed_ids.append(action_log_id)
                _log_batch_failure("reject", action_log_id, exc)
                continue
            rejected += 1
        return BatchRejectionResult(
            rejected=rejected, failed=len(failed_ids), failed_ids=tuple(failed_ids)
        )

    def pending_approvals(self, user_id: str, limit: int) -> tuple[ActionLog, ...]:
        """Oldest-first approval backlog."""
        return self._repository.list_action_logs(
            user_id=user_id,
            log_filter=ActionLogFilter(
                statuses=("pending_approval",), oldest_first=True, limit=limit
            ),
        )

    def pending_count(self, user_id: str) -> int:
        return self._repository.count_action_logs(
            user_id=user_id, statuses=("pending_approval",)
        )

    def stats(self, user_id: str, since: datetime | None = None) -> ActionStats:
        return self._repository.action_log_stats(user_id=user_id, since=since)

    def history(
        self,
        user_id: str,
        *,
        status: ActionStatus | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int,
    ) -> tuple[ActionLogWithType, ...]:
        """Newest-first action logs with their action types.

        ``since`` and ``until`` bound ``created_at`` inclusively.
        """
        return self._repository.list_action_logs_with_types(
            user_id=user_id,
            log_filter=ActionLogFilter(
                statuses=() if status is None else (status,),
                since=since,
                until=until,
                limit=limit,
            ),
        )

    def logs_for_target(
        self, user_id: str, target_type: TargetType, target_id: str
    ) -> tuple[ActionLog, ...]:
        return self._repository.list_action_logs(
            user_id=user_id,
            log_filter=ActionLogFilter(target_type=target_type, target_id=target_id),
        )

    def feedback_history(self, user_id: str, limit: int) -> tuple[ActionLog, ...]:
        return self._repository.list_action_logs(
            user_id=user_id,
            log_filter=ActionLogFilter(with_feedback=True, limit=limit),
        )

    def _require_executable(self, log: ActionLog) -> None:
        if log.status not in _EXECUTABLE:
            raise InvalidStateTransition(
                action_log_id=log.id,
                current_status=log.status,
                expected=("approved",),
                operation="execute",
            )

    def _transition(
        self,
        log: ActionLog,
        *,
        expected: tuple[ActionStatus, ...],
        operation: str,
        update: dict[str, Any],
    ) -> ActionLog:
        if log.status not in expected:
            raise InvalidStateTransition(
                action_log_id=log.id,
                current_status=log.status,
                expected=expected,
                operation=operation,
            )
        updated = log.model_copy(update=update)
        if not self._repository.update_action_log(log=updated, expected_statuses=expected):
            current = self._repository.get_action_log(action_log_id=log.id)
            raise InvalidStateTransition(
                action_log_id=log.id,
                current_status=log.status if current is None else current.status,
                expected=expected,
                operation=operation,
            )
        with log_context(
            {
                fields.ACTION_LOG_ID: log.id,
                fields.USER_ID: log.user_id,
                fields.STATUS_FROM: log.status,
                fields.STATUS_TO: updated.status,
            }
        ):
            _LOGGER.info("Action log transitioned")
        return updated


def _log_batch_failure(
    operation: str, action_log_id: str, exc: AuthorityEngineError
) -> None:
    with log_context(
        {
            fields.ACTION_LOG_ID: action_log_id,
            "operation": operation,
            "error": str(exc),
        }
    ):
        _LOGGER.warning("Batch item failed")
