"""Unit tests for action log transitions, batches and queries."""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from packages.steward_shared.errors import ErrorCategory, dependency_error
from services.action.authority_engine.data.repository import (
    InMemoryAuthorityRepository,
)
from services.action.authority_engine.domain import (
    ActionLog,
    ActionStatus,
    ExecutionReport,
)
from services.action.authority_engine.errors import (
    ActionLogNotFound,
    ExecutionAlreadyClaimed,
    InvalidStateTransition,
    IrreversibleAction,
    PersistenceError,
)
from services.action.authority_engine.lifecycle import ActionLogStateMachine
from services.action.authority_engine.registry import ActionTypeRegistry

_BASE = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


class _Clock:
    def __init__(self) -> None:
        self.now = _BASE + timedelta(hours=1)

    def __call__(self) -> datetime:
        return self.now


class _Harness:
    def __init__(self, repository: InMemoryAuthorityRepository | None = None) -> None:
        self.repository = repository or InMemoryAuthorityRepository()
        self.registry = ActionTypeRegistry(self.repository)
        self.registry.seed()
        self.clock = _Clock()
        self.machine = ActionLogStateMachine(
            repository=self.repository, registry=self.registry, clock=self.clock
        )
        self._counter = 0

    def add_log(
        self,
        *,
        status: ActionStatus = "pending_approval",
        action_type_name: str = "decline_spam_meeting",
        user_id: str = "user-1",
        target_id: str = "evt-1",
        minutes: int | None = None,
    ) -> ActionLog:
        self._counter += 1
        action_type = self.registry.require(action_type_name)
        offset = self._counter if minutes is None else minutes
        return self.repository.insert_action_log(
            log=ActionLog(
                id=f"log-{self._counter}",
                user_id=user_id,
                action_type_id=action_type.id,
                authority_level=action_type.default_authority_level,
                status=status,
                target_type="calendar_event",
                target_id=target_id,
                description="Candidate action",
                created_at=_BASE + timedelta(minutes=offset),
            )
        )


class _Executor:
    def __init__(
        self, report: ExecutionReport | None = None, *, raises: Exception | None = None
    ) -> None:
        self.calls = 0
        self._report = report or ExecutionReport(success=True)
        self._raises = raises

    def __call__(self) -> ExecutionReport:
        self.calls += 1
        if self._raises is not None:
            raise self._raises
        return self._report


class _FailingUpdates(InMemoryAuthorityRepository):
    """Raises a store error when updating one chosen log."""

    def __init__(self) -> None:
        super().__init__()
        self.failing_id: str | None = None

    def update_action_log(
        self, *, log: ActionLog, expected_statuses: tuple[ActionStatus, ...]
    ) -> bool:
        if log.id == self.failing_id:
            raise PersistenceError(
                operation="update_action_log",
                detail=dependency_error("connection lost"),
            )
        return super().update_action_log(log=log, expected_statuses=expected_statuses)


def test_approve_sets_status_timestamp_and_edited_content() -> None:
    harness = _Harness()
    log = harness.add_log()

    approved = harness.machine.approve(log.id, edited_content="Sorry, can't make it")

    assert approved.status == "approved"
    assert approved.approved_at == harness.clock.now
    assert approved.metadata.edited_content == "Sorry, can't make it"
    assert harness.machine.get(log.id) == approved


def test_reject_records_reason() -> None:
    harness = _Harness()
    log = harness.add_log()

    rejected = harness.machine.reject(log.id, reason="Not spam")

    assert rejected.status == "rejected"
    assert rejected.rejected_at == harness.clock.now
    assert rejected.metadata.rejection_reason == "Not spam"


def test_approve_twice_is_invalid() -> None:
    harness = _Harness()
    log = harness.add_log()
    harness.machine.approve(log.id)

    with pytest.raises(InvalidStateTransition) as excinfo:
        harness.machine.approve(log.id)

    assert excinfo.value.current_status == "approved"
    assert excinfo.value.expected == ("pending_approval",)
    assert excinfo.value.to_error_detail().category == ErrorCategory.CONFLICT


def test_reject_after_approve_is_invalid() -> None:
    harness = _Harness()
    log = harness.add_log()
    harness.machine.approve(log.id)

    with pytest.raises(InvalidStateTransition):
        harness.machine.reject(log.id)


def test_execute_success_records_executed() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")
    executor = _Executor()

    result = harness.machine.execute(log.id, executor)

    assert result.success is True
    assert result.error is None
    assert result.action_log.status == "executed"
    assert result.action_log.executed_at == harness.clock.now
    assert executor.calls == 1


def test_execute_twice_never_reinvokes_executor() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")
    executor = _Executor()
    harness.machine.execute(log.id, executor)

    with pytest.raises(InvalidStateTransition):
        harness.machine.execute(log.id, executor)

    assert executor.calls == 1
    assert harness.machine.get(log.id).status == "executed"


def test_execute_reported_failure_records_failed() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")

    result = harness.machine.execute(
        log.id, _Executor(ExecutionReport(success=False, error="calendar API 503"))
    )

    assert result.success is False
    assert result.error == "calendar API 503"
    assert result.action_log.status == "failed"
    assert result.action_log.metadata.failure_reason == "calendar API 503"
    assert len(result.errors) == 1
    assert result.errors[0].category == ErrorCategory.DEPENDENCY
    assert result.errors[0].retryable is False


def test_execute_failure_without_message_uses_default() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")

    result = harness.machine.execute(log.id, _Executor(ExecutionReport(success=False)))

    assert result.error == "Unknown error"
    assert result.action_log.metadata.failure_reason == "Unknown error"


def test_execute_raising_executor_records_failed() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")

    result = harness.machine.execute(
        log.id, _Executor(raises=RuntimeError("connection reset"))
    )

    assert result.success is False
    assert result.error == "connection reset"
    assert harness.machine.get(log.id).status == "failed"


def test_execute_tolerates_pending_approval() -> None:
    harness = _Harness()
    log = harness.add_log()

    result = harness.machine.execute(log.id, _Executor())

    assert result.success is True
    assert result.action_log.status == "executed"


@pytest.mark.parametrize("status", ["rejected", "failed", "reversed"])
def test_execute_rejects_terminal_statuses(status: ActionStatus) -> None:
    harness = _Harness()
    log = harness.add_log(status=status)
    executor = _Executor()

    with pytest.raises(InvalidStateTransition):
        harness.machine.execute(log.id, executor)

    assert executor.calls == 0


def test_execute_accepts_mapping_reports() -> None:
    harness = _Harness()
    succeeded = harness.add_log(status="approved")
    failed = harness.add_log(status="approved")

    ok = harness.machine.execute(succeeded.id, lambda: {"success": True})
    broken = harness.machine.execute(
        failed.id, lambda: {"success": False, "error": "boom"}
    )

    assert ok.success is True
    assert ok.action_log.status == "executed"
    assert broken.success is False
    assert broken.action_log.status == "failed"
    assert broken.action_log.metadata.failure_reason == "boom"


@pytest.mark.parametrize(
    "returned",
    [None, {"error": "no success flag"}, "done"],
)
def test_execute_records_failed_for_malformed_report(returned: Any) -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")
    executor: Callable[[], Any] = lambda: returned  # noqa: E731

    result = harness.machine.execute(log.id, executor)

    assert result.success is False
    assert result.error is not None
    assert result.error.startswith("Executor returned an invalid report")
    assert harness.machine.get(log.id).status == "failed"


def test_execute_refuses_log_already_claimed() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")
    harness.repository.claim_execution(
        action_log_id=log.id,
        expected_statuses=("approved",),
        claimed_at=harness.clock.now,
    )
    executor = _Executor()

    with pytest.raises(ExecutionAlreadyClaimed) as excinfo:
        harness.machine.execute(log.id, executor)

    detail = excinfo.value.to_error_detail()
    assert executor.calls == 0
    assert detail.category == ErrorCategory.CONFLICT
    assert detail.metadata["action_log_id"] == log.id
    assert harness.machine.get(log.id).status == "approved"


def test_concurrent_execute_runs_executor_once() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")
    entered = threading.Event()
    release = threading.Event()
    calls: list[int] = []
    outcomes: list[object] = []

    def slow_executor() -> ExecutionReport:
        calls.append(1)
        entered.set()
        release.wait(timeout=5)
        return ExecutionReport(success=True)

    def run() -> None:
        outcomes.append(harness.machine.execute(log.id, slow_executor))

    worker = threading.Thread(target=run)
    worker.start()
    assert entered.wait(timeout=5)

    try:
        with pytest.raises(ExecutionAlreadyClaimed):
            harness.machine.execute(log.id, slow_executor)
    finally:
        release.set()
        worker.join(timeout=5)

    assert len(calls) == 1
    assert len(outcomes) == 1
    assert harness.machine.get(log.id).status == "executed"
    assert harness.machine.get(log.id).execution_started_at == harness.clock.now


def test_reverse_executed_reversible_action() -> None:
    harness = _Harness()
    log = harness.add_log(status="executed")

    reversed_log = harness.machine.reverse(
        log.id, reversed_by="user", reason="Meant to accept"
    )

    assert reversed_log.status == "reversed"
    assert reversed_log.metadata.reversed_by == "user"
    assert reversed_log.metadata.reversal_reason == "Meant to accept"
    assert reversed_log.metadata.reversed_at == harness.clock.now


def test_reverse_irreversible_action_fails_without_change() -> None:
    harness = _Harness()
    log = harness.add_log(status="executed", action_type_name="delegate_task")

    with pytest.raises(IrreversibleAction):
        harness.machine.reverse(log.id, reversed_by="user")

    assert harness.machine.get(log.id).status == "executed"


def test_reverse_requires_executed_status() -> None:
    harness = _Harness()
    log = harness.add_log(status="approved")

    with pytest.raises(InvalidStateTransition):
        harness.machine.reverse(log.id, reversed_by="system")


def test_feedback_is_accepted_in_any_status_and_survives_transitions() -> None:
    harness = _Harness()
    log = harness.add_log()

    with_feedback = harness.machine.add_feedback(log.id, "should_auto")
    approved = harness.machine.approve(log.id)

    assert with_feedback.user_feedback == "should_auto"
    assert with_feedback.status == "pending_approval"
    assert harness.machine.get(log.id).user_feedback == "should_auto"
    assert approved.status == "approved"


def test_foreign_logs_are_not_visible() -> None:
    harness = _Harness()
    log = harness.add_log(user_id="user-2")

    with pytest.raises(ActionLogNotFound):
        harness.machine.get(log.id, user_id="user-1")
    with pytest.raises(ActionLogNotFound):
        harness.machine.approve(log.id, user_id="user-1")
    with pytest.raises(ActionLogNotFound):
        harness.machine.add_feedback(log.id, "wrong", user_id="user-1")
    assert harness.machine.get(log.id).status == "pending_approval"


def test_missing_log_raises_not_found() -> None:
    harness = _Harness()

    with pytest.raises(ActionLogNotFound):
        harness.machine.reject("missing")


def test_batch_approve_continues_past_failures() -> None:
    harness = _Harness()
    first = harness.add_log()
    second = harness.add_log()
    third = harness.add_log()
    harness.machine.reject(second.id)

    result = harness.machine.batch_approve([first.id, second.id, third.id])

    assert result.approved == 2
    assert result.failed == 1
    assert result.failed_ids == (second.id,)
    assert harness.machine.get(first.id).status == "approved"
    assert harness.machine.get(third.id).status == "approved"


def test_batch_reject_counts_unknown_ids_as_failures() -> None:
    harness = _Harness()
    log = harness.add_log()

    result = harness.machine.batch_reject([log.id, "missing"], reason="Batch cleanup")

    assert result.rejected == 1
    assert result.failed_ids == ("missing",)
    assert harness.machine.get(log.id).metadata.rejection_reason == "Batch cleanup"


def test_batch_approve_isolates_store_errors() -> None:
    repository = _FailingUpdates()
    harness = _Harness(repository)
    first = harness.add_log()
    broken = harness.add_log()
    third = harness.add_log()
    repository.failing_id = broken.id

    result = harness.machine.batch_approve([first.id, broken.id, third.id])

    assert result.approved == 2
    assert result.failed_ids == (broken.id,)
    assert harness.machine.get(first.id).status == "approved"
    assert harness.machine.get(broken.id).status == "pending_approval"
    assert harness.machine.get(third.id).status == "approved"


def test_batch_reject_isolates_store_errors() -> None:
    repository = _FailingUpdates()
    harness = _Harness(repository)
    first = harness.add_log()
    broken = harness.add_log()
    repository.failing_id = broken.id

    result = harness.machine.batch_reject([broken.id, first.id])

    assert result.rejected == 1
    assert result.failed == 1
    assert result.failed_ids == (broken.id,)
    assert harness.machine.get(first.id).status == "rejected"


def test_pending_approvals_are_oldest_first_and_limited() -> None:
    harness = _Harness()
    newest = harness.add_log(minutes=30)
    oldest = harness.add_log(minutes=5)
    middle = harness.add_log(minutes=10)
    harness.add_log(status="approved", minutes=1)
    harness.add_log(user_id="user-2", minutes=2)

    pending = harness.machine.pending_approvals("user-1", limit=2)

    assert [log.id for log in pending] == [oldest.id, middle.id]
    assert harness.machine.pending_count("user-1") == 3
    assert newest.id not in {log.id for log in pending}


def test_history_is_newest_first_with_status_filter() -> None:
    harness = _Harness()
    early = harness.add_log(status="executed", minutes=1)
    late = harness.add_log(status="executed", minutes=20)
    harness.add_log(status="rejected", minutes=10)

    executed = harness.machine.history("user-1", status="executed", limit=10)
    everything = harness.machine.history("user-1", limit=2)

    assert [entry.action_log.id for entry in executed] == [late.id, early.id]
    assert len(everything) == 2
    assert everything[0].action_log.id == late.id
    assert everything[0].action_type.name == "decline_spam_meeting"
    assert everything[0].action_type.id == late.action_type_id


def test_history_bounds_created_at_inclusively() -> None:
    harness = _Harness()
    harness.add_log(minutes=1)
    start = harness.add_log(minutes=10)
    end = harness.add_log(minutes=20)
    harness.add_log(minutes=30)

    window = harness.machine.history(
        "user-1",
        since=_BASE + timedelta(minutes=10),
        until=_BASE + timedelta(minutes=20),
        limit=10,
    )

    assert [entry.action_log.id for entry in window] == [end.id, start.id]


def test_same_timestamp_ties_follow_insertion_order() -> None:
    harness = _Harness()
    first = harness.add_log(minutes=5)
    second = harness.add_log(minutes=5)

    pending = harness.machine.pending_approvals("user-1", limit=10)

    assert [log.id for log in pending] == [first.id, second.id]


def test_logs_for_target_and_feedback_history() -> None:
    harness = _Harness()
    on_target = harness.add_log(target_id="evt-9")
    harness.add_log(target_id="evt-10")
    harness.machine.add_feedback(on_target.id, "correct")

    for_target = harness.machine.logs_for_target("user-1", "calendar_event", "evt-9")
    feedback = harness.machine.feedback_history("user-1", limit=10)

    assert [log.id for log in for_target] == [on_target.id]
    assert [log.id for log in feedback] == [on_target.id]


def test_stats_group_by_status_type_and_feedback() -> None:
    harness = _Harness()
    harness.add_log(minutes=1)
    executed = harness.add_log(status="executed", minutes=2)
    harness.add_log(
        status="executed", action_type_name="delegate_task", minutes=120
    )
    harness.machine.add_feedback(executed.id, "correct")

    stats = harness.machine.stats("user-1")
    recent = harness.machine.stats("user-1", since=_BASE + timedelta(hours=1))

    assert stats.total == 3
    assert stats.by_status == {"pending_approval": 1, "executed": 2}
    assert stats.by_type == {"decline_spam_meeting": 2, "delegate_task": 1}
    assert stats.by_feedback == {"correct": 1}
    assert recent.total == 1
    assert recent.by_type == {"delegate_task": 1}
