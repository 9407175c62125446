"""Unit tests for authority checks and the action request pipeline."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from services.action.authority_engine.data.repository import (
    InMemoryAuthorityRepository,
)
from services.action.authority_engine.domain import (
    ActionLogFilter,
    ActionLogMetadata,
    ActionRequest,
    AuthorityConditions,
    AuthorityLevel,
    ConditionContext,
    CustomRule,
    TimeWindow,
)
from services.action.authority_engine.errors import UnknownActionType
from services.action.authority_engine.pipeline import (
    REASON_AUTO_EXECUTE,
    REASON_DISABLED,
    REASON_DISABLED_FOR_USER,
    REASON_REQUIRES_APPROVAL,
    DecisionPipeline,
)
from services.action.authority_engine.registry import ActionTypeRegistry
from services.action.authority_engine.resolver import AuthorityResolver

_NOW = datetime(2026, 3, 2, 10, 30, tzinfo=UTC)


class _Harness:
    def __init__(self, fallback_level: AuthorityLevel = "ask_first") -> None:
        self.repository = InMemoryAuthorityRepository()
        self.registry = ActionTypeRegistry(self.repository)
        self.registry.seed()
        self.resolver = AuthorityResolver(
            repository=self.repository, registry=self.registry
        )
        self.pipeline = DecisionPipeline(
            repository=self.repository,
            registry=self.registry,
            resolver=self.resolver,
            fallback_level=fallback_level,
        )

    def set_level(
        self,
        name: str,
        level: AuthorityLevel,
        conditions: AuthorityConditions | None = None,
        *,
        user_id: str = "user-1",
    ) -> None:
        self.resolver.set_level(
            user_id, self.registry.require(name).id, level, conditions
        )

    def logs(self, user_id: str = "user-1"):
        return self.repository.list_action_logs(
            user_id=user_id, log_filter=ActionLogFilter()
        )


def _request(name: str = "decline_spam_meeting", **overrides) -> ActionRequest:
    values = {
        "action_type_name": name,
        "target_type": "calendar_event",
        "target_id": "evt-1",
        "description": "Decline invite from unknown sender",
    }
    values.update(overrides)
    return ActionRequest.model_validate(values)


def test_check_authority_uses_type_default_without_override() -> None:
    harness = _Harness()

    result = harness.pipeline.check_authority("user-1", "reschedule_meeting")

    assert result.authority_level == "draft_approve"
    assert result.is_user_override is False
    assert result.conditions_met is True
    assert result.conditions_failure_reason is None


def test_check_authority_reports_disabled_as_unmet() -> None:
    harness = _Harness()
    harness.set_level("reschedule_meeting", "disabled")

    result = harness.pipeline.check_authority("user-1", "reschedule_meeting")

    assert result.authority_level == "disabled"
    assert result.conditions_met is False
    assert result.conditions_failure_reason == REASON_DISABLED


def test_check_authority_evaluates_override_conditions() -> None:
    harness = _Harness()
    harness.set_level(
        "follow_up_nudge",
        "full_auto",
        AuthorityConditions(blocked_domains=("competitor.com",)),
    )

    result = harness.pipeline.check_authority(
        "user-1",
        "follow_up_nudge",
        ConditionContext(sender_email="ceo@competitor.com"),
    )

    assert result.is_user_override is True
    assert result.conditions_met is False
    assert result.conditions_failure_reason == "Sender domain is blocked"


def test_check_authority_rejects_unknown_name() -> None:
    harness = _Harness()

    with pytest.raises(UnknownActionType):
        harness.pipeline.check_authority("user-1", "send_fax")


def test_unknown_action_type_creates_no_log() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1", _request("send_fax"), now=_NOW
    )

    assert decision.should_execute is False
    assert decision.authority_level == "disabled"
    assert decision.requires_approval is False
    assert decision.action_log is None
    assert decision.reason == "Unknown action type: send_fax"
    assert harness.logs() == ()


def test_disabled_for_user_creates_no_log() -> None:
    harness = _Harness()
    harness.set_level("decline_spam_meeting", "disabled")

    decision = harness.pipeline.process_action_request(
        "user-1", _request(), now=_NOW
    )

    assert decision.should_execute is False
    assert decision.requires_approval is False
    assert decision.action_log is None
    assert decision.reason == REASON_DISABLED_FOR_USER
    assert harness.logs() == ()


def test_full_auto_is_logged_as_approved() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1", _request(confidence_score=92), now=_NOW
    )

    assert decision.should_execute is True
    assert decision.requires_approval is False
    assert decision.authority_level == "full_auto"
    assert decision.reason == REASON_AUTO_EXECUTE
    log = decision.action_log
    assert log is not None
    assert log.status == "approved"
    assert log.approved_at == _NOW
    assert log.created_at == _NOW
    assert log.metadata.triggered_by == "auto"
    assert harness.logs() == (log,)


def test_draft_approve_default_is_pending() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1",
        _request("reply_routine_email", target_type="email", target_id="msg-1"),
        now=_NOW,
    )

    assert decision.should_execute is False
    assert decision.requires_approval is True
    assert decision.authority_level == "draft_approve"
    assert decision.reason == REASON_REQUIRES_APPROVAL
    assert decision.action_log is not None
    assert decision.action_log.status == "pending_approval"
    assert decision.action_log.approved_at is None


def test_high_risk_ask_first_is_pending() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1",
        _request("delegate_task", target_type="commitment", target_id="c-9"),
        now=_NOW,
    )

    assert decision.authority_level == "ask_first"
    assert decision.should_execute is False
    assert decision.action_log is not None
    assert decision.action_log.status == "pending_approval"


def test_failed_conditions_fall_back_to_ask_first() -> None:
    harness = _Harness()
    harness.set_level(
        "decline_spam_meeting",
        "full_auto",
        AuthorityConditions(min_confidence=0.8),
    )

    decision = harness.pipeline.process_action_request(
        "user-1", _request(confidence_score=60), now=_NOW
    )

    assert decision.should_execute is False
    assert decision.requires_approval is True
    assert decision.authority_level == "ask_first"
    assert decision.reason == (
        "Action requires user approval: "
        "Confidence score below threshold (60 < 80)"
    )
    assert decision.action_log is not None
    assert decision.action_log.authority_level == "ask_first"
    assert decision.action_log.status == "pending_approval"


def test_missing_confidence_skips_confidence_floor() -> None:
    harness = _Harness()
    harness.set_level(
        "decline_spam_meeting",
        "full_auto",
        AuthorityConditions(min_confidence=0.8),
    )

    decision = harness.pipeline.process_action_request(
        "user-1", _request(), now=_NOW
    )

    assert decision.should_execute is True
    assert decision.authority_level == "full_auto"


def test_condition_fallback_never_loosens_level() -> None:
    harness = _Harness(fallback_level="draft_approve")
    harness.set_level(
        "delegate_task",
        "ask_first",
        AuthorityConditions(vip_only=True),
    )

    decision = harness.pipeline.process_action_request(
        "user-1",
        _request("delegate_task", target_type="commitment", target_id="c-1"),
        now=_NOW,
    )

    assert decision.authority_level == "ask_first"
    assert decision.reason == "Action requires user approval: VIP status required"


def test_configured_fallback_level_applies_to_full_auto() -> None:
    harness = _Harness(fallback_level="draft_approve")
    harness.set_level(
        "decline_spam_meeting", "full_auto", AuthorityConditions(vip_only=True)
    )

    decision = harness.pipeline.process_action_request(
        "user-1", _request(), now=_NOW
    )

    assert decision.authority_level == "draft_approve"
    assert decision.should_execute is False


def test_time_window_uses_request_time() -> None:
    harness = _Harness()
    harness.set_level(
        "decline_spam_meeting",
        "full_auto",
        AuthorityConditions(
            time_window=TimeWindow(start="09:00", end="17:00", timezone="UTC")
        ),
    )

    inside = harness.pipeline.process_action_request(
        "user-1", _request(), now=_NOW
    )
    outside = harness.pipeline.process_action_request(
        "user-1", _request(), now=datetime(2026, 3, 2, 21, 15, tzinfo=UTC)
    )

    assert inside.should_execute is True
    assert outside.should_execute is False
    assert outside.reason == (
        "Action requires user approval: Outside allowed time window (09:00 - 17:00)"
    )


def test_request_context_feeds_condition_evaluation() -> None:
    harness = _Harness()
    harness.set_level(
        "decline_spam_meeting",
        "full_auto",
        AuthorityConditions(
            allowed_domains=("example.com",),
            custom_rules=(CustomRule(field="attendees", operator="lt", value=5),),
        ),
    )

    allowed = harness.pipeline.process_action_request(
        "user-1",
        _request(
            context={
                "sender_email": "Ops@Example.com",
                "custom_fields": {"attendees": 3},
            }
        ),
        now=_NOW,
    )
    crowded = harness.pipeline.process_action_request(
        "user-1",
        _request(
            context={
                "sender_email": "ops@example.com",
                "custom_fields": {"attendees": 12},
            }
        ),
        now=_NOW,
    )

    assert allowed.should_execute is True
    assert crowded.should_execute is False
    assert crowded.reason == (
        "Action requires user approval: Custom rule failed: attendees lt 5"
    )


def test_caller_importance_score_wins_over_confidence() -> None:
    harness = _Harness()
    harness.set_level(
        "decline_spam_meeting", "full_auto", AuthorityConditions(min_confidence=0.5)
    )

    decision = harness.pipeline.process_action_request(
        "user-1",
        _request(confidence_score=20, context={"importance_score": 90}),
        now=_NOW,
    )

    assert decision.should_execute is True


def test_request_metadata_is_kept_with_triggered_by_forced() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1",
        _request(
            payload={"response": "decline"},
            metadata=ActionLogMetadata(
                triggered_by="job",
                triggered_job_id="job-7",
                related_calendar_event_id="evt-1",
            ),
        ),
        now=_NOW,
    )

    log = decision.action_log
    assert log is not None
    assert log.payload == {"response": "decline"}
    assert log.metadata.triggered_by == "auto"
    assert log.metadata.triggered_job_id == "job-7"
    assert log.metadata.related_calendar_event_id == "evt-1"


def test_overrides_are_scoped_per_user() -> None:
    harness = _Harness()
    harness.set_level("decline_spam_meeting", "disabled", user_id="user-2")

    mine = harness.pipeline.process_action_request("user-1", _request(), now=_NOW)
    theirs = harness.pipeline.process_action_request("user-2", _request(), now=_NOW)

    assert mine.should_execute is True
    assert theirs.action_log is None
    assert len(harness.logs("user-1")) == 1
    assert harness.logs("user-2") == ()


def test_naive_now_is_treated_as_utc() -> None:
    harness = _Harness()

    decision = harness.pipeline.process_action_request(
        "user-1", _request(), now=datetime(2026, 3, 2, 10, 30)
    )

    assert decision.action_log is not None
    assert decision.action_log.created_at == _NOW
