"""Domain contracts for action authority decisions and the action log."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.steward_shared.errors import ErrorDetail

ActionCategory = Literal["calendar", "email", "task", "notification"]
RiskLevel = Literal["low", "medium", "high"]
AuthorityLevel = Literal["full_auto", "draft_approve", "ask_first", "disabled"]
ActionStatus = Literal[
    "pending_approval",
    "approved",
    "rejected",
    "executed",
    "failed",
    "reversed",
]
TargetType = Literal["email", "calendar_event", "commitment", "person"]
UserFeedback = Literal["correct", "should_ask", "should_auto", "wrong"]
TriggeredBy = Literal["auto", "user", "job"]
ReversedBy = Literal["user", "system"]
RuleOperator = Literal["equals", "contains", "matches", "gt", "lt"]
SettingSource = Literal["user", "system", "emergency_stop", "conservative_reset"]

ACTION_STATUSES: tuple[ActionStatus, ...] = (
    "pending_approval",
    "approved",
    "rejected",
    "executed",
    "failed",
    "reversed",
)
USER_FEEDBACK_VALUES: tuple[UserFeedback, ...] = (
    "correct",
    "should_ask",
    "should_auto",
    "wrong",
)

_HH_MM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class ActionType(BaseModel):
    """Catalogued kind of automatable action with its intrinsic risk."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = ""
    category: ActionCategory
    risk_level: RiskLevel
    default_authority_level: AuthorityLevel
    reversible: bool
    created_at: datetime


class TimeWindow(BaseModel):
    """Inclusive local-time window, ``HH:MM`` on both ends."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    start: str = Field(pattern=_HH_MM_PATTERN)
    end: str = Field(pattern=_HH_MM_PATTERN)
    timezone: str | None = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"unknown timezone: {value}") from exc
        return value


class CustomRule(BaseModel):
    """One ``field operator value`` test against caller-supplied fields."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    field: str = Field(min_length=1)
    operator: RuleOperator
    value: str | int | float | bool


class AuthorityConditions(BaseModel):
    """Optional policy constraints; an absent field imposes nothing."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    time_window: TimeWindow | None = None
    allowed_domains: tuple[str, ...] = ()
    blocked_domains: tuple[str, ...] = ()
    vip_only: bool = False
    min_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    custom_rules: tuple[CustomRule, ...] = ()


class AuthoritySetting(BaseModel):
    """Per-user override of one action type's default authority level."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    action_type_id: str = Field(min_length=1)
    authority_level: AuthorityLevel
    conditions: AuthorityConditions | None = None
    created_at: datetime
    updated_at: datetime
    updated_by: SettingSource = "user"


class EffectiveAuthority(BaseModel):
    """Resolved authority for one (user, action type) pair."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    level: AuthorityLevel
    is_user_override: bool
    conditions: AuthorityConditions | None = None


class AuthoritySettingSummary(BaseModel):
    """One action type joined with the user's effective authority for it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action_type: ActionType
    authority_level: AuthorityLevel
    is_user_override: bool
    conditions: AuthorityConditions | None = None
    updated_at: datetime | None = None
    updated_by: SettingSource | None = None


class SettingUpdate(BaseModel):
    """One entry of a bulk settings update, addressed by action type name."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action_type_name: str = Field(min_length=1)
    authority_level: AuthorityLevel
    conditions: AuthorityConditions | None = None


class ConditionContext(BaseModel):
    """Runtime facts a condition set is evaluated against.

    ``sender_domain`` is derived from ``sender_email`` when only the address
    is supplied.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    sender_email: str | None = None
    sender_domain: str | None = None
    current_time: datetime | None = None
    importance_score: float | None = None
    is_vip: bool | None = None
    custom_fields: dict[str, Any] | None = None

    @model_validator(mode="before")
    @classmethod
    def _derive_sender_domain(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        email = data.get("sender_email")
        if data.get("sender_domain") is None and isinstance(email, str) and "@" in email:
            data = {**data, "sender_domain": email.rsplit("@", 1)[1].lower()}
        return data


class ConditionResult(BaseModel):
    """Outcome of one condition evaluation."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    met: bool
    reason: str | None = None


class AuthorityCheckResult(BaseModel):
    """Effective authority plus whether its conditions hold right now."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    authority_level: AuthorityLevel
    is_user_override: bool
    conditions: AuthorityConditions | None = None
    conditions_met: bool
    conditions_failure_reason: str | None = None


class ConfidenceFactor(BaseModel):
    """One weighted input to an action's confidence score."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    factor: str = Field(min_length=1)
    weight: float
    contribution: float


class ActionLogMetadata(BaseModel):
    """Closed set of side information recorded alongside an action log."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    triggered_by: TriggeredBy | None = None
    triggered_job_id: str | None = None
    related_email_id: str | None = None
    related_calendar_event_id: str | None = None
    related_commitment_id: str | None = None
    related_person_id: str | None = None
    draft_content: str | None = None
    edited_content: str | None = None
    rejection_reason: str | None = None
    failure_reason: str | None = None
    reversed_at: datetime | None = None
    reversed_by: ReversedBy | None = None
    reversal_reason: str | None = None
    confidence_factors: tuple[ConfidenceFactor, ...] = ()


class ActionRequest(BaseModel):
    """Candidate action submitted to the decision pipeline."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action_type_name: str = Field(min_length=1)
    target_type: TargetType
    target_id: str = Field(min_length=1)
    description: str = Field(min_length=1)
    payload: dict[str, Any] = Field(default_factory=dict)
    confidence_score: float | None = Field(default=None, ge=0.0, le=100.0)
    metadata: ActionLogMetadata | None = None
    context: ConditionContext | None = None


class ActionLog(BaseModel):
    """Persisted, auditable record of one candidate or executed action."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)
    action_type_id: str = Field(min_length=1)
    authority_level: AuthorityLevel
    status: ActionStatus
    target_type: TargetType
    target_id: str
    description: str
    payload: dict[str, Any] = Field(default_factory=dict)
    confidence_score: float | None = None
    user_feedback: UserFeedback | None = None
    metadata: ActionLogMetadata = Field(default_factory=ActionLogMetadata)
    created_at: datetime
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    executed_at: datetime | None = None
    execution_started_at: datetime | None = None


class ActionLogWithType(BaseModel):
    """One action log joined with the catalog entry it was recorded against."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    action_log: ActionLog
    action_type: ActionType


class ActionDecision(BaseModel):
    """Pipeline outcome for one action request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    should_execute: bool
    authority_level: AuthorityLevel
    requires_approval: bool
    action_log: ActionLog | None = None
    reason: str


class ExecutionReport(BaseModel):
    """What a caller-supplied executor reports back."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    success: bool
    error: str | None = None


class ExecutionResult(BaseModel):
    """Outcome of running an executor against an approved action log."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    success: bool
    action_log: ActionLog
    error: str | None = None
    errors: tuple[ErrorDetail, ...] = ()


class BatchApprovalResult(BaseModel):
    """Per-item outcome counts of a batch approval."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    approved: int = 0
    failed: int = 0
    failed_ids: tuple[str, ...] = ()


class BatchRejectionResult(BaseModel):
    """Per-item outcome counts of a batch rejection."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    rejected: int = 0
    failed: int = 0
    failed_ids: tuple[str, ...] = ()


class InitializationResult(BaseModel):
    """Settings created when initializing authority for one user."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    settings_created: int
    action_types: int


class BulkPolicyResult(BaseModel):
    """Rows touched by an emergency stop or conservative reset."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    updated: int


class SeedResult(BaseModel):
    """Outcome of seeding the built-in action type catalog."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    created: int
    existing: int


class ActionStats(BaseModel):
    """Aggregate counts over one user's action logs."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    total: int
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    by_feedback: dict[str, int] = Field(default_factory=dict)
    since: datetime | None = None


class ActionLogFilter(BaseModel):
    """Filter applied when listing one user's action logs.

    ``since`` and ``until`` bound ``created_at`` inclusively.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    statuses: tuple[ActionStatus, ...] = ()
    target_type: TargetType | None = None
    target_id: str | None = None
    with_feedback: bool = False
    since: datetime | None = None
    until: datetime | None = None
    oldest_first: bool = False
    limit: int | None = Field(default=None, gt=0)


class AuthorityEngineHealthStatus(BaseModel):
    """Health payload and persistence-backed counters."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    service_ready: bool
    substrate_ready: bool
    action_type_rows: int
    authority_setting_rows: int
    action_log_rows: int
    detail: str


def utc_now() -> datetime:
    """Return current UTC timestamp for engine records."""
    return datetime.now(UTC)
