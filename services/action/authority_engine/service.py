"""Authoritative in-process Python API for the Authority Engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from packages.steward_shared.config import StewardSettings
from packages.steward_shared.envelope import Envelope, EnvelopeMeta
from services.action.authority_engine.domain import (
    ActionCategory,
    ActionDecision,
    ActionLog,
    ActionLogWithType,
    ActionRequest,
    ActionStats,
    ActionStatus,
    ActionType,
    AuthorityCheckResult,
    AuthorityConditions,
    AuthorityEngineHealthStatus,
    AuthorityLevel,
    AuthoritySetting,
    AuthoritySettingSummary,
    BatchApprovalResult,
    BatchRejectionResult,
    BulkPolicyResult,
    ConditionContext,
    ExecutionResult,
    InitializationResult,
    ReversedBy,
    RiskLevel,
    SeedResult,
    SettingUpdate,
    TargetType,
    UserFeedback,
)
from services.action.authority_engine.lifecycle import ActionExecutor


class AuthorityEngineService(ABC):
    """Public API for action authority decisions and the action log lifecycle."""

    @abstractmethod
    def health(self, *, meta: EnvelopeMeta) -> Envelope[AuthorityEngineHealthStatus]:
        """Return readiness and persistence row counters."""

    @abstractmethod
    def seed_action_types(self, *, meta: EnvelopeMeta) -> Envelope[SeedResult]:
        """Insert missing built-in action types; never duplicates by name."""

    @abstractmethod
    def list_action_types(
        self,
        *,
        meta: EnvelopeMeta,
        category: ActionCategory | None = None,
        risk_level: RiskLevel | None = None,
    ) -> Envelope[list[ActionType]]:
        """List catalogued action types, optionally filtered."""

    @abstractmethod
    def initialize_authority_for_user(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[InitializationResult]:
        """Create default-mirroring settings for every type the user lacks."""

    @abstractmethod
    def check_authority(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_type_name: str,
        context: ConditionContext | None = None,
    ) -> Envelope[AuthorityCheckResult]:
        """Return effective authority and whether its conditions hold."""

    @abstractmethod
    def process_action_request(
        self, *, meta: EnvelopeMeta, user_id: str, request: ActionRequest
    ) -> Envelope[ActionDecision]:
        """Decide one candidate action and record its action log."""

    @abstractmethod
    def execute_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        executor: ActionExecutor,
    ) -> Envelope[ExecutionResult]:
        """Run the caller's executor for an approved action and record the outcome."""

    @abstractmethod
    def approve_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        edited_content: str | None = None,
    ) -> Envelope[ActionLog]:
        """Approve one pending action."""

    @abstractmethod
    def reject_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        reason: str | None = None,
    ) -> Envelope[ActionLog]:
        """Reject one pending action."""

    @abstractmethod
    def reverse_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        reversed_by: ReversedBy,
        reason: str | None = None,
    ) -> Envelope[ActionLog]:
        """Mark one executed, reversible action as reversed."""

    @abstractmethod
    def submit_action_feedback(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        feedback: UserFeedback,
    ) -> Envelope[ActionLog]:
        """Attach advisory feedback to one action log."""

    @abstractmethod
    def batch_approve_actions(
        self, *, meta: EnvelopeMeta, user_id: str, action_log_ids: Sequence[str]
    ) -> Envelope[BatchApprovalResult]:
        """Approve each id independently and report counts."""

    @abstractmethod
    def batch_reject_actions(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_ids: Sequence[str],
        reason: str | None = None,
    ) -> Envelope[BatchRejectionResult]:
        """Reject each id independently and report counts."""

    @abstractmethod
    def get_action_log(
        self, *, meta: EnvelopeMeta, user_id: str, action_log_id: str
    ) -> Envelope[ActionLog]:
        """Read one of the user's action logs."""

    @abstractmethod
    def get_pending_actions(
        self, *, meta: EnvelopeMeta, user_id: str, limit: int | None = None
    ) -> Envelope[list[ActionLog]]:
        """Return the oldest-first approval backlog."""

    @abstractmethod
    def get_pending_action_count(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[int]:
        """Return the number of actions awaiting approval."""

    @abstractmethod
    def get_action_statistics(
        self, *, meta: EnvelopeMeta, user_id: str, since: datetime | None = None
    ) -> Envelope[ActionStats]:
        """Return counts by status, action type and feedback."""

    @abstractmethod
    def get_action_history(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        status: ActionStatus | None = None,
        limit: int | None = None,
    ) -> Envelope[list[ActionLogWithType]]:
        """Return newest-first action logs with their action types."""

    @abstractmethod
    def get_action_history_in_range(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        start: datetime,
        end: datetime,
        status: ActionStatus | None = None,
        limit: int | None = None,
    ) -> Envelope[list[ActionLogWithType]]:
        """Return newest-first action logs created between ``start`` and ``end`` inclusive."""

    @abstractmethod
    def get_actions_for_target(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        target_type: TargetType,
        target_id: str,
    ) -> Envelope[list[ActionLog]]:
        """Return action logs recorded against one email, event, commitment or person."""

    @abstractmethod
    def get_feedback_history(
        self, *, meta: EnvelopeMeta, user_id: str, limit: int | None = None
    ) -> Envelope[list[ActionLog]]:
        """Return newest-first action logs that carry user feedback."""

    @abstractmethod
    def list_authority_settings(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[AuthoritySettingSummary]]:
        """Return every action type with the user's effective authority."""

    @abstractmethod
    def update_authority_setting(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_type_name: str,
        authority_level: AuthorityLevel,
        conditions: AuthorityConditions | None = None,
    ) -> Envelope[AuthoritySetting]:
        """Upsert the user's override for one action type."""

    @abstractmethod
    def bulk_update_authority_settings(
        self, *, meta: EnvelopeMeta, user_id: str, updates: Sequence[SettingUpdate]
    ) -> Envelope[list[AuthoritySetting]]:
        """Upsert several overrides; unknown names reject the whole update."""

    @abstractmethod
    def disable_all_automation(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[BulkPolicyResult]:
        """Emergency stop: set every action type to ``disabled``."""

    @abstractmethod
    def enable_conservative_automation(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[BulkPolicyResult]:
        """Reset every action type to a risk-based conservative level."""


def build_authority_engine_service(
    *, settings: StewardSettings
) -> AuthorityEngineService:
    """Build default Authority Engine implementation from typed settings."""
    from services.action.authority_engine.implementation import (
        DefaultAuthorityEngineService,
    )

    return DefaultAuthorityEngineService.from_settings(settings)
