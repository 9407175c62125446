"""Transport-neutral protocol interfaces for Authority Engine persistence."""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from services.action.authority_engine.domain import (
    ActionCategory,
    ActionLog,
    ActionLogFilter,
    ActionLogWithType,
    ActionStats,
    ActionStatus,
    ActionType,
    AuthorityConditions,
    AuthorityLevel,
    AuthoritySetting,
    RiskLevel,
    SettingSource,
    UserFeedback,
)


class AuthorityRepository(Protocol):
    """Protocol for action type, authority setting and action log storage."""

    def insert_action_type(self, *, action_type: ActionType) -> ActionType:
        """Insert one action type, or return the existing row with that name."""

    def get_action_type(self, *, action_type_id: str) -> ActionType | None:
        """Read one action type by id."""

    def get_action_type_by_name(self, *, name: str) -> ActionType | None:
        """Read one action type by unique name."""

    def list_action_types(
        self,
        *,
        category: ActionCategory | None = None,
        risk_level: RiskLevel | None = None,
    ) -> tuple[ActionType, ...]:
        """List action types ordered by name, optionally filtered."""

    def get_setting(
        self, *, user_id: str, action_type_id: str
    ) -> AuthoritySetting | None:
        """Read one user's setting for one action type."""

    def list_settings(self, *, user_id: str) -> tuple[AuthoritySetting, ...]:
        """List every setting owned by one user."""

    def upsert_setting(
        self,
        *,
        user_id: str,
        action_type_id: str,
        authority_level: AuthorityLevel,
        conditions: AuthorityConditions | None,
        updated_by: SettingSource,
        keep_conditions: bool = False,
    ) -> AuthoritySetting:
        """Insert or overwrite the setting for one (user, action type) pair.

        With ``keep_conditions`` an existing row keeps its stored conditions.
        """

    def insert_setting_if_absent(
        self,
        *,
        user_id: str,
        action_type_id: str,
        authority_level: AuthorityLevel,
        updated_by: SettingSource,
    ) -> AuthoritySetting | None:
        """Insert one setting unless the pair exists; ``None`` when it did."""

    def insert_action_log(self, *, log: ActionLog) -> ActionLog:
        """Persist one new action log."""

    def get_action_log(self, *, action_log_id: str) -> ActionLog | None:
        """Read one action log by id."""

    def update_action_log(
        self, *, log: ActionLog, expected_statuses: tuple[ActionStatus, ...]
    ) -> bool:
        """Write ``log`` only while the stored status is one of ``expected_statuses``."""

    def claim_execution(
        self,
        *,
        action_log_id: str,
        expected_statuses: tuple[ActionStatus, ...],
        claimed_at: datetime,
    ) -> bool:
        """Stamp ``execution_started_at`` once, while unclaimed and in ``expected_statuses``.

        Returns ``False`` when another caller already holds the claim or the
        status moved on.
        """

    def set_feedback(
        self, *, action_log_id: str, feedback: UserFeedback
    ) -> ActionLog | None:
        """Attach feedback without touching status; ``None`` when missing."""

    def list_action_logs(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLog, ...]:
        """List one user's action logs matching ``log_filter``."""

    def list_action_logs_with_types(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLogWithType, ...]:
        """List matching action logs joined with their action type."""

    def count_action_logs(
        self, *, user_id: str | None, statuses: tuple[ActionStatus, ...] = ()
    ) -> int:
        """Count action logs for one user (or all users), optionally by status."""

    def action_log_stats(
        self, *, user_id: str, since: datetime | None
    ) -> ActionStats:
        """Aggregate one user's action logs by status, type name and feedback."""

    def count_action_types(self) -> int:
        """Return number of action type rows."""

    def count_settings(self) -> int:
        """Return number of authority setting rows."""
