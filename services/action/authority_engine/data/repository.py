"""Authority Engine persistence repository implementations."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from datetime import datetime
from threading import RLock
from typing import Any

from sqlalchemy import Select, and_, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from packages.steward_shared.envelope import to_utc
from packages.steward_shared.ids import generate_ulid_str
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.schema_session import SessionProvider
from services.action.authority_engine.data.schema import (
    action_logs,
    action_types,
    authority_settings,
)
from services.action.authority_engine.domain import (
    ActionCategory,
    ActionLog,
    ActionLogFilter,
    ActionLogMetadata,
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
    utc_now,
)
from services.action.authority_engine.errors import PersistenceError
from services.action.authority_engine.interfaces import AuthorityRepository

_TYPE_PREFIX = "action_type__"


class InMemoryAuthorityRepository(AuthorityRepository):
    """Lock-guarded in-memory repository with the same contract as SQL."""

    def __init__(self) -> None:
        self._lock = RLock()
        self._action_types: dict[str, ActionType] = {}
        self._settings: dict[tuple[str, str], AuthoritySetting] = {}
        self._logs: dict[str, ActionLog] = {}
        self._log_order: dict[str, int] = {}

    def insert_action_type(self, *, action_type: ActionType) -> ActionType:
        with self._lock:
            for existing in self._action_types.values():
                if existing.name == action_type.name:
                    return existing
            self._action_types[action_type.id] = action_type
            return action_type

    def get_action_type(self, *, action_type_id: str) -> ActionType | None:
        with self._lock:
            return self._action_types.get(action_type_id)

    def get_action_type_by_name(self, *, name: str) -> ActionType | None:
        with self._lock:
            for action_type in self._action_types.values():
                if action_type.name == name:
                    return action_type
            return None

    def list_action_types(
        self,
        *,
        category: ActionCategory | None = None,
        risk_level: RiskLevel | None = None,
    ) -> tuple[ActionType, ...]:
        with self._lock:
            rows = sorted(self._action_types.values(), key=lambda item: item.name)
        return tuple(
            row
            for row in rows
            if (category is None or row.category == category)
            and (risk_level is None or row.risk_level == risk_level)
        )

    def get_setting(
        self, *, user_id: str, action_type_id: str
    ) -> AuthoritySetting | None:
        with self._lock:
            return self._settings.get((user_id, action_type_id))

    def list_settings(self, *, user_id: str) -> tuple[AuthoritySetting, ...]:
        with self._lock:
            return tuple(
                setting
                for (owner, _), setting in self._settings.items()
                if owner == user_id
            )

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
        now = utc_now()
        key = (user_id, action_type_id)
        with self._lock:
            existing = self._settings.get(key)
            if existing is None:
                setting = AuthoritySetting(
                    id=generate_ulid_str(),
                    user_id=user_id,
                    action_type_id=action_type_id,
                    authority_level=authority_level,
                    conditions=conditions,
                    created_at=now,
                    updated_at=now,
                    updated_by=updated_by,
                )
            else:
                setting = existing.model_copy(
                    update={
                        "authority_level": authority_level,
                        "conditions": (
                            existing.conditions if keep_conditions else conditions
                        ),
                        "updated_at": now,
                        "updated_by": updated_by,
                    }
                )
            self._settings[key] = setting
            return setting

    def insert_setting_if_absent(
        self,
        *,
        user_id: str,
        action_type_id: str,
        authority_level: AuthorityLevel,
        updated_by: SettingSource,
    ) -> AuthoritySetting | None:
        with self._lock:
            if (user_id, action_type_id) in self._settings:
                return None
            return self.upsert_setting(
                user_id=user_id,
                action_type_id=action_type_id,
                authority_level=authority_level,
                conditions=None,
                updated_by=updated_by,
            )

    def insert_action_log(self, *, log: ActionLog) -> ActionLog:
        with self._lock:
            self._logs[log.id] = log
            self._log_order[log.id] = len(self._log_order)
            return log

    def get_action_log(self, *, action_log_id: str) -> ActionLog | None:
        with self._lock:
            return self._logs.get(action_log_id)

    def update_action_log(
        self, *, log: ActionLog, expected_statuses: tuple[ActionStatus, ...]
    ) -> bool:
        with self._lock:
            current = self._logs.get(log.id)
            if current is None or current.status not in expected_statuses:
                return False
            self._logs[log.id] = log.model_copy(
                update={
                    "user_feedback": current.user_feedback,
                    "execution_started_at": current.execution_started_at,
                }
            )
            return True

    def claim_execution(
        self,
        *,
        action_log_id: str,
        expected_statuses: tuple[ActionStatus, ...],
        claimed_at: datetime,
    ) -> bool:
        with self._lock:
            current = self._logs.get(action_log_id)
            if (
                current is None
                or current.status not in expected_statuses
                or current.execution_started_at is not None
            ):
                return False
            self._logs[action_log_id] = current.model_copy(
                update={"execution_started_at": claimed_at}
            )
            return True

    def set_feedback(
        self, *, action_log_id: str, feedback: UserFeedback
    ) -> ActionLog | None:
        with self._lock:
            current = self._logs.get(action_log_id)
            if current is None:
                return None
            updated = current.model_copy(update={"user_feedback": feedback})
            self._logs[action_log_id] = updated
            return updated

    def list_action_logs(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLog, ...]:
        with self._lock:
            rows = [
                row
                for row in self._logs.values()
                if row.user_id == user_id and _matches(row, log_filter)
            ]
            rows.sort(
                key=lambda row: (row.created_at, self._log_order[row.id]),
                reverse=not log_filter.oldest_first,
            )
        if log_filter.limit is not None:
            rows = rows[: log_filter.limit]
        return tuple(rows)

    def list_action_logs_with_types(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLogWithType, ...]:
        with self._lock:
            types = dict(self._action_types)
            rows = [
                ActionLogWithType(action_log=row, action_type=types[row.action_type_id])
                for row in self.list_action_logs(
                    user_id=user_id,
                    log_filter=log_filter.model_copy(update={"limit": None}),
                )
                if row.action_type_id in types
            ]
        if log_filter.limit is not None:
            rows = rows[: log_filter.limit]
        return tuple(rows)

    def count_action_logs(
        self, *, user_id: str | None, statuses: tuple[ActionStatus, ...] = ()
    ) -> int:
        with self._lock:
            return sum(
                1
                for row in self._logs.values()
                if (user_id is None or row.user_id == user_id)
                and (not statuses or row.status in statuses)
            )

    def action_log_stats(
        self, *, user_id: str, since: datetime | None
    ) -> ActionStats:
        with self._lock:
            rows = [
                row
                for row in self._logs.values()
                if row.user_id == user_id
                and (since is None or row.created_at >= to_utc(since))
            ]
            names = {key: value.name for key, value in self._action_types.items()}
        return ActionStats(
            total=len(rows),
            by_status=dict(Counter(row.status for row in rows)),
            by_type=dict(
                Counter(names.get(row.action_type_id, row.action_type_id) for row in rows)
            ),
            by_feedback=dict(
                Counter(row.user_feedback for row in rows if row.user_feedback)
            ),
            since=since,
        )

    def count_action_types(self) -> int:
        with self._lock:
            return len(self._action_types)

    def count_settings(self) -> int:
        with self._lock:
            return len(self._settings)


class SqlAuthorityRepository(AuthorityRepository):
    """SQL repository over Authority Engine-owned tables.

    Statements are plain SQLAlchemy Core so the same code runs on Postgres
    (through schema-scoped sessions) and SQLite.
    """

    def __init__(self, sessions: SessionProvider) -> None:
        self._sessions = sessions

    def insert_action_type(self, *, action_type: ActionType) -> ActionType:
        with _translate_errors("insert_action_type"):
            try:
                with self._sessions.session() as session:
                    session.execute(
                        insert(action_types).values(**_action_type_values(action_type))
                    )
                return action_type
            except IntegrityError:
                existing = self.get_action_type_by_name(name=action_type.name)
                if existing is None:
                    raise
                return existing

    def get_action_type(self, *, action_type_id: str) -> ActionType | None:
        with _translate_errors("get_action_type"), self._sessions.session() as session:
            row = (
                session.execute(
                    select(action_types).where(action_types.c.id == action_type_id)
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_action_type(row)

    def get_action_type_by_name(self, *, name: str) -> ActionType | None:
        with _translate_errors("get_action_type_by_name"), self._sessions.session() as session:
            row = (
                session.execute(select(action_types).where(action_types.c.name == name))
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_action_type(row)

    def list_action_types(
        self,
        *,
        category: ActionCategory | None = None,
        risk_level: RiskLevel | None = None,
    ) -> tuple[ActionType, ...]:
        stmt = select(action_types).order_by(action_types.c.name)
        if category is not None:
            stmt = stmt.where(action_types.c.category == category)
        if risk_level is not None:
            stmt = stmt.where(action_types.c.risk_level == risk_level)
        with _translate_errors("list_action_types"), self._sessions.session() as session:
            return tuple(_to_action_type(row) for row in session.execute(stmt).mappings())

    def get_setting(
        self, *, user_id: str, action_type_id: str
    ) -> AuthoritySetting | None:
        with _translate_errors("get_setting"), self._sessions.session() as session:
            row = (
                session.execute(_setting_select(user_id, action_type_id))
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_setting(row)

    def list_settings(self, *, user_id: str) -> tuple[AuthoritySetting, ...]:
        stmt = select(authority_settings).where(authority_settings.c.user_id == user_id)
        with _translate_errors("list_settings"), self._sessions.session() as session:
            return tuple(_to_setting(row) for row in session.execute(stmt).mappings())

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
        with _translate_errors("upsert_setting"):
            try:
                return self._upsert_setting_once(
                    user_id=user_id,
                    action_type_id=action_type_id,
                    authority_level=authority_level,
                    conditions=conditions,
                    updated_by=updated_by,
                    keep_conditions=keep_conditions,
                )
            except IntegrityError:
                # Lost an insert race on the unique pair; the row now exists.
                return self._upsert_setting_once(
                    user_id=user_id,
                    action_type_id=action_type_id,
                    authority_level=authority_level,
                    conditions=conditions,
                    updated_by=updated_by,
                    keep_conditions=keep_conditions,
                )

    def insert_setting_if_absent(
        self,
        *,
        user_id: str,
        action_type_id: str,
        authority_level: AuthorityLevel,
        updated_by: SettingSource,
    ) -> AuthoritySetting | None:
        now = utc_now()
        setting = AuthoritySetting(
            id=generate_ulid_str(),
            user_id=user_id,
            action_type_id=action_type_id,
            authority_level=authority_level,
            created_at=now,
            updated_at=now,
            updated_by=updated_by,
        )
        with _translate_errors("insert_setting_if_absent"):
            try:
                with self._sessions.session() as session:
                    existing = session.execute(
                        _setting_select(user_id, action_type_id)
                    ).first()
                    if existing is not None:
                        return None
                    session.execute(
                        insert(authority_settings).values(**_setting_values(setting))
                    )
            except IntegrityError:
                return None
        return setting

    def insert_action_log(self, *, log: ActionLog) -> ActionLog:
        with _translate_errors("insert_action_log"), self._sessions.session() as session:
            session.execute(insert(action_logs).values(**_action_log_values(log)))
        return log

    def get_action_log(self, *, action_log_id: str) -> ActionLog | None:
        with _translate_errors("get_action_log"), self._sessions.session() as session:
            row = (
                session.execute(
                    select(action_logs).where(action_logs.c.id == action_log_id)
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_action_log(row)

    def update_action_log(
        self, *, log: ActionLog, expected_statuses: tuple[ActionStatus, ...]
    ) -> bool:
        stmt = (
            update(action_logs)
            .where(
                and_(
                    action_logs.c.id == log.id,
                    action_logs.c.status.in_(expected_statuses),
                )
            )
            .values(
                status=log.status,
                authority_level=log.authority_level,
                metadata=log.metadata.model_dump(mode="json"),
                approved_at=_utc_or_none(log.approved_at),
                rejected_at=_utc_or_none(log.rejected_at),
                executed_at=_utc_or_none(log.executed_at),
            )
        )
        with _translate_errors("update_action_log"), self._sessions.session() as session:
            return session.execute(stmt).rowcount == 1

    def claim_execution(
        self,
        *,
        action_log_id: str,
        expected_statuses: tuple[ActionStatus, ...],
        claimed_at: datetime,
    ) -> bool:
        stmt = (
            update(action_logs)
            .where(
                and_(
                    action_logs.c.id == action_log_id,
                    action_logs.c.status.in_(expected_statuses),
                    action_logs.c.execution_started_at.is_(None),
                )
            )
            .values(execution_started_at=to_utc(claimed_at))
        )
        with _translate_errors("claim_execution"), self._sessions.session() as session:
            return session.execute(stmt).rowcount == 1

    def set_feedback(
        self, *, action_log_id: str, feedback: UserFeedback
    ) -> ActionLog | None:
        with _translate_errors("set_feedback"), self._sessions.session() as session:
            session.execute(
                update(action_logs)
                .where(action_logs.c.id == action_log_id)
                .values(user_feedback=feedback)
            )
            row = (
                session.execute(
                    select(action_logs).where(action_logs.c.id == action_log_id)
                )
                .mappings()
                .one_or_none()
            )
            return None if row is None else _to_action_log(row)

    def list_action_logs(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLog, ...]:
        stmt = _filtered(select(action_logs), user_id=user_id, log_filter=log_filter)
        with _translate_errors("list_action_logs"), self._sessions.session() as session:
            return tuple(_to_action_log(row) for row in session.execute(stmt).mappings())

    def list_action_logs_with_types(
        self, *, user_id: str, log_filter: ActionLogFilter
    ) -> tuple[ActionLogWithType, ...]:
        joined = select(
            action_logs,
            *(
                column.label(f"{_TYPE_PREFIX}{column.name}")
                for column in action_types.c
            ),
        ).select_from(
            action_logs.join(
                action_types, action_logs.c.action_type_id == action_types.c.id
            )
        )
        stmt = _filtered(joined, user_id=user_id, log_filter=log_filter)
        with (
            _translate_errors("list_action_logs_with_types"),
            self._sessions.session() as session,
        ):
            return tuple(
                ActionLogWithType(
                    action_log=_to_action_log(row),
                    action_type=_to_action_type(
                        {
                            key[len(_TYPE_PREFIX) :]: value
                            for key, value in row.items()
                            if key.startswith(_TYPE_PREFIX)
                        }
                    ),
                )
                for row in session.execute(stmt).mappings()
            )

    def count_action_logs(
        self, *, user_id: str | None, statuses: tuple[ActionStatus, ...] = ()
    ) -> int:
        stmt = select(func.count()).select_from(action_logs)
        if user_id is not None:
            stmt = stmt.where(action_logs.c.user_id == user_id)
        if statuses:
            stmt = stmt.where(action_logs.c.status.in_(statuses))
        with _translate_errors("count_action_logs"), self._sessions.session() as session:
            return int(session.execute(stmt).scalar_one())

    def action_log_stats(
        self, *, user_id: str, since: datetime | None
    ) -> ActionStats:
        scope = [action_logs.c.user_id == user_id]
        if since is not None:
            scope.append(action_logs.c.created_at >= to_utc(since))
        by_status_stmt = (
            select(action_logs.c.status, func.count())
            .where(*scope)
            .group_by(action_logs.c.status)
        )
        by_type_stmt = (
            select(action_types.c.name, func.count())
            .select_from(
                action_logs.join(
                    action_types, action_logs.c.action_type_id == action_types.c.id
                )
            )
            .where(*scope)
            .group_by(action_types.c.name)
        )
        by_feedback_stmt = (
            select(action_logs.c.user_feedback, func.count())
            .where(*scope, action_logs.c.user_feedback.is_not(None))
            .group_by(action_logs.c.user_feedback)
        )
        with _translate_errors("action_log_stats"), self._sessions.session() as session:
            by_status = {str(key): int(count) for key, count in session.execute(by_status_stmt)}
            by_type = {str(key): int(count) for key, count in session.execute(by_type_stmt)}
            by_feedback = {
                str(key): int(count) for key, count in session.execute(by_feedback_stmt)
            }
        return ActionStats(
            total=sum(by_status.values()),
            by_status=by_status,
            by_type=by_type,
            by_feedback=by_feedback,
            since=since,
        )

    def count_action_types(self) -> int:
        stmt = select(func.count()).select_from(action_types)
        with _translate_errors("count_action_types"), self._sessions.session() as session:
            return int(session.execute(stmt).scalar_one())

    def count_settings(self) -> int:
        stmt = select(func.count()).select_from(authority_settings)
        with _translate_errors("count_settings"), self._sessions.session() as session:
            return int(session.execute(stmt).scalar_one())

    def _upsert_setting_once(
        self,
        *,
        user_id: str,
        action_type_id: str,
        authority_level: AuthorityLevel,
        conditions: AuthorityConditions | None,
        updated_by: SettingSource,
        keep_conditions: bool,
    ) -> AuthoritySetting:
        now = utc_now()
        with self._sessions.session() as session:
            row = (
                session.execute(_setting_select(user_id, action_type_id))
                .mappings()
                .one_or_none()
            )
            if row is None:
                setting = AuthoritySetting(
                    id=generate_ulid_str(),
                    user_id=user_id,
                    action_type_id=action_type_id,
                    authority_level=authority_level,
                    conditions=conditions,
                    created_at=now,
                    updated_at=now,
                    updated_by=updated_by,
                )
                session.execute(
                    insert(authority_settings).values(**_setting_values(setting))
                )
                return setting

            existing = _to_setting(row)
            setting = existing.model_copy(
                update={
                    "authority_level": authority_level,
                    "conditions": existing.conditions if keep_conditions else conditions,
                    "updated_at": now,
                    "updated_by": updated_by,
                }
            )
            session.execute(
                update(authority_settings)
                .where(authority_settings.c.id == existing.id)
                .values(
                    authority_level=setting.authority_level,
                    conditions=_conditions_json(setting.conditions),
                    updated_at=now,
                    updated_by=updated_by,
                )
            )
            return setting


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        raise PersistenceError(
            operation=operation, detail=normalize_postgres_error(exc)
        ) from exc


def _matches(row: ActionLog, log_filter: ActionLogFilter) -> bool:
    if log_filter.statuses and row.status not in log_filter.statuses:
        return False
    if log_filter.target_type is not None and row.target_type != log_filter.target_type:
        return False
    if log_filter.target_id is not None and row.target_id != log_filter.target_id:
        return False
    if log_filter.with_feedback and row.user_feedback is None:
        return False
    if log_filter.since is not None and row.created_at < to_utc(log_filter.since):
        return False
    if log_filter.until is not None and row.created_at > to_utc(log_filter.until):
        return False
    return True


def _filtered(stmt: Select, *, user_id: str, log_filter: ActionLogFilter) -> Select:
    stmt = stmt.where(action_logs.c.user_id == user_id)
    if log_filter.statuses:
        stmt = stmt.where(action_logs.c.status.in_(log_filter.statuses))
    if log_filter.target_type is not None:
        stmt = stmt.where(action_logs.c.target_type == log_filter.target_type)
    if log_filter.target_id is not None:
        stmt = stmt.where(action_logs.c.target_id == log_filter.target_id)
    if log_filter.with_feedback:
        stmt = stmt.where(action_logs.c.user_feedback.is_not(None))
    if log_filter.since is not None:
        stmt = stmt.where(action_logs.c.created_at >= to_utc(log_filter.since))
    if log_filter.until is not None:
        stmt = stmt.where(action_logs.c.created_at <= to_utc(log_filter.until))
    if log_filter.oldest_first:
        stmt = stmt.order_by(action_logs.c.created_at.asc(), action_logs.c.id.asc())
    else:
        stmt = stmt.order_by(action_logs.c.created_at.desc(), action_logs.c.id.desc())
    if log_filter.limit is not None:
        stmt = stmt.limit(log_filter.limit)
    return stmt


def _setting_select(user_id: str, action_type_id: str):
    return select(authority_settings).where(
        and_(
            authority_settings.c.user_id == user_id,
            authority_settings.c.action_type_id == action_type_id,
        )
    )


def _utc_or_none(value: datetime | None) -> datetime | None:
    return None if value is None else to_utc(value)


def _conditions_json(conditions: AuthorityConditions | None) -> dict[str, Any] | None:
    return None if conditions is None else conditions.model_dump(mode="json")


def _action_type_values(action_type: ActionType) -> dict[str, Any]:
    values = action_type.model_dump()
    values["created_at"] = to_utc(action_type.created_at)
    return values


def _setting_values(setting: AuthoritySetting) -> dict[str, Any]:
    return {
        "id": setting.id,
        "user_id": setting.user_id,
        "action_type_id": setting.action_type_id,
        "authority_level": setting.authority_level,
        "conditions": _conditions_json(setting.conditions),
        "created_at": to_utc(setting.created_at),
        "updated_at": to_utc(setting.updated_at),
        "updated_by": setting.updated_by,
    }


def _action_log_values(log: ActionLog) -> dict[str, Any]:
    return {
        "id": log.id,
        "user_id": log.user_id,
        "action_type_id": log.action_type_id,
        "authority_level": log.authority_level,
        "status": log.status,
        "target_type": log.target_type,
        "target_id": log.target_id,
        "description": log.description,
        "payload": log.payload,
        "confidence_score": log.confidence_score,
        "user_feedback": log.user_feedback,
        "metadata": log.metadata.model_dump(mode="json"),
        "created_at": to_utc(log.created_at),
        "approved_at": _utc_or_none(log.approved_at),
        "rejected_at": _utc_or_none(log.rejected_at),
        "executed_at": _utc_or_none(log.executed_at),
        "execution_started_at": _utc_or_none(log.execution_started_at),
    }


def _to_action_type(row: Mapping[str, Any]) -> ActionType:
    return ActionType(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        category=row["category"],
        risk_level=row["risk_level"],
        default_authority_level=row["default_authority_level"],
        reversible=bool(row["reversible"]),
        created_at=to_utc(row["created_at"]),
    )


def _to_setting(row: Mapping[str, Any]) -> AuthoritySetting:
    conditions = row["conditions"]
    return AuthoritySetting(
        id=row["id"],
        user_id=row["user_id"],
        action_type_id=row["action_type_id"],
        authority_level=row["authority_level"],
        conditions=(
            None if conditions is None else AuthorityConditions.model_validate(conditions)
        ),
        created_at=to_utc(row["created_at"]),
        updated_at=to_utc(row["updated_at"]),
        updated_by=row["updated_by"],
    )


def _to_action_log(row: Mapping[str, Any]) -> ActionLog:
    return ActionLog(
        id=row["id"],
        user_id=row["user_id"],
        action_type_id=row["action_type_id"],
        authority_level=row["authority_level"],
        status=row["status"],
        target_type=row["target_type"],
        target_id=row["target_id"],
        description=row["description"],
        payload=dict(row["payload"] or {}),
        confidence_score=row["confidence_score"],
        user_feedback=row["user_feedback"],
        metadata=ActionLogMetadata.model_validate(row["metadata"] or {}),
        created_at=to_utc(row["created_at"]),
        approved_at=_utc_or_none(row["approved_at"]),
        rejected_at=_utc_or_none(row["rejected_at"]),
        executed_at=_utc_or_none(row["executed_at"]),
        execution_started_at=_utc_or_none(row["execution_started_at"]),
    )
