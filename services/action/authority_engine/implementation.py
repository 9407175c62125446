"""Concrete Authority Engine implementation returning envelopes."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

from packages.steward_shared.config import StewardSettings
from packages.steward_shared.envelope import (
    Envelope,
    EnvelopeMeta,
    failure,
    success,
    to_utc,
    validate_meta,
)
from packages.steward_shared.errors import ErrorDetail, codes, validation_error
from packages.steward_shared.logging import get_logger, public_api_instrumented
from services.action.authority_engine.component import SERVICE_COMPONENT_ID
from services.action.authority_engine.config import (
    AuthorityEngineSettings,
    resolve_authority_engine_settings,
)
from services.action.authority_engine.data.repository import (
    InMemoryAuthorityRepository,
    SqlAuthorityRepository,
)
from services.action.authority_engine.data.runtime import (
    AuthorityEnginePostgresRuntime,
)
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
    utc_now,
)
from services.action.authority_engine.errors import AuthorityEngineError
from services.action.authority_engine.interfaces import AuthorityRepository
from services.action.authority_engine.lifecycle import (
    ActionExecutor,
    ActionLogStateMachine,
)
from services.action.authority_engine.pipeline import DecisionPipeline
from services.action.authority_engine.registry import ActionTypeRegistry
from services.action.authority_engine.resolver import AuthorityResolver
from services.action.authority_engine.service import AuthorityEngineService

_LOGGER = get_logger(__name__)

T = TypeVar("T")


class DefaultAuthorityEngineService(AuthorityEngineService):
    """Default Authority Engine wiring registry, resolver, pipeline and lifecycle."""

    def __init__(
        self,
        *,
        settings: AuthorityEngineSettings,
        repository: AuthorityRepository | None = None,
        runtime: AuthorityEnginePostgresRuntime | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._settings = settings
        self._repository = repository or InMemoryAuthorityRepository()
        self._runtime = runtime
        self._registry = ActionTypeRegistry(self._repository)
        self._resolver = AuthorityResolver(
            repository=self._repository, registry=self._registry
        )
        self._pipeline = DecisionPipeline(
            repository=self._repository,
            registry=self._registry,
            resolver=self._resolver,
            fallback_level=settings.condition_fallback_level,
        )
        self._lifecycle = ActionLogStateMachine(
            repository=self._repository, registry=self._registry, clock=clock
        )
        if settings.seed_on_startup:
            self._registry.seed()

    @classmethod
    def from_settings(
        cls, settings: StewardSettings
    ) -> "DefaultAuthorityEngineService":
        """Build the engine over Postgres from typed root runtime settings."""
        runtime = AuthorityEnginePostgresRuntime.from_settings(settings)
        return cls(
            settings=resolve_authority_engine_settings(settings),
            repository=SqlAuthorityRepository(runtime.schema_sessions),
            runtime=runtime,
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def health(self, *, meta: EnvelopeMeta) -> Envelope[AuthorityEngineHealthStatus]:
        """Return service readiness and persistence row counters."""
        errors = self._validate(meta=meta)
        if errors:
            return failure(meta=meta, errors=errors)

        substrate_ready = True if self._runtime is None else self._runtime.is_healthy()
        if not substrate_ready:
            return success(
                meta=meta,
                payload=AuthorityEngineHealthStatus(
                    service_ready=False,
                    substrate_ready=False,
                    action_type_rows=0,
                    authority_setting_rows=0,
                    action_log_rows=0,
                    detail="postgres unavailable",
                ),
            )
        return self._run(
            meta=meta,
            operation="health",
            call=lambda: AuthorityEngineHealthStatus(
                service_ready=True,
                substrate_ready=True,
                action_type_rows=self._repository.count_action_types(),
                authority_setting_rows=self._repository.count_settings(),
                action_log_rows=self._repository.count_action_logs(user_id=None),
                detail="ok",
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
    )
    def seed_action_types(self, *, meta: EnvelopeMeta) -> Envelope[SeedResult]:
        errors = self._validate(meta=meta)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(meta=meta, operation="seed_action_types", call=self._registry.seed)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("category", "risk_level"),
    )
    def list_action_types(
        self,
        *,
        meta: EnvelopeMeta,
        category: ActionCategory | None = None,
        risk_level: RiskLevel | None = None,
    ) -> Envelope[list[ActionType]]:
        errors = self._validate(meta=meta)
        if errors:
            return failure(meta=meta, errors=errors)

        def _list() -> list[ActionType]:
            if category is not None and risk_level is not None:
                return [
                    item
                    for item in self._registry.by_category(category)
                    if item.risk_level == risk_level
                ]
            if category is not None:
                return list(self._registry.by_category(category))
            if risk_level is not None:
                return list(self._registry.by_risk_level(risk_level))
            return list(self._registry.all())

        return self._run(meta=meta, operation="list_action_types", call=_list)

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def initialize_authority_for_user(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[InitializationResult]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="initialize_authority_for_user",
            call=lambda: InitializationResult(
                settings_created=self._resolver.initialize_for_user(user_id),
                action_types=len(self._registry.all()),
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_type_name"),
    )
    def check_authority(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_type_name: str,
        context: ConditionContext | None = None,
    ) -> Envelope[AuthorityCheckResult]:
        errors = self._validate(
            meta=meta, user_id=user_id, action_type_name=action_type_name
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="check_authority",
            call=lambda: self._pipeline.check_authority(
                user_id, action_type_name, context
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def process_action_request(
        self, *, meta: EnvelopeMeta, user_id: str, request: ActionRequest
    ) -> Envelope[ActionDecision]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="process_action_request",
            call=lambda: self._pipeline.process_action_request(user_id, request),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id"),
    )
    def execute_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        executor: ActionExecutor,
    ) -> Envelope[ExecutionResult]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="execute_action",
            call=lambda: self._lifecycle.execute(
                action_log_id, executor, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id"),
    )
    def approve_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        edited_content: str | None = None,
    ) -> Envelope[ActionLog]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="approve_action",
            call=lambda: self._lifecycle.approve(
                action_log_id, edited_content=edited_content, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id"),
    )
    def reject_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        reason: str | None = None,
    ) -> Envelope[ActionLog]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="reject_action",
            call=lambda: self._lifecycle.reject(
                action_log_id, reason=reason, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id", "reversed_by"),
    )
    def reverse_action(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        reversed_by: ReversedBy,
        reason: str | None = None,
    ) -> Envelope[ActionLog]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="reverse_action",
            call=lambda: self._lifecycle.reverse(
                action_log_id, reversed_by=reversed_by, reason=reason, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id", "feedback"),
    )
    def submit_action_feedback(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_id: str,
        feedback: UserFeedback,
    ) -> Envelope[ActionLog]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="submit_action_feedback",
            call=lambda: self._lifecycle.add_feedback(
                action_log_id, feedback, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def batch_approve_actions(
        self, *, meta: EnvelopeMeta, user_id: str, action_log_ids: Sequence[str]
    ) -> Envelope[BatchApprovalResult]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(
            meta=meta,
            payload=self._lifecycle.batch_approve(action_log_ids, user_id=user_id),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def batch_reject_actions(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_log_ids: Sequence[str],
        reason: str | None = None,
    ) -> Envelope[BatchRejectionResult]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return success(
            meta=meta,
            payload=self._lifecycle.batch_reject(
                action_log_ids, reason=reason, user_id=user_id
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_log_id"),
    )
    def get_action_log(
        self, *, meta: EnvelopeMeta, user_id: str, action_log_id: str
    ) -> Envelope[ActionLog]:
        errors = self._validate(meta=meta, user_id=user_id, action_log_id=action_log_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_action_log",
            call=lambda: self._lifecycle.get(action_log_id, user_id=user_id),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def get_pending_actions(
        self, *, meta: EnvelopeMeta, user_id: str, limit: int | None = None
    ) -> Envelope[list[ActionLog]]:
        errors = self._validate(meta=meta, user_id=user_id)
        resolved = self._resolve_limit(
            limit,
            default=self._settings.pending_default_limit,
            maximum=self._settings.pending_max_limit,
            errors=errors,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_pending_actions",
            call=lambda: list(self._lifecycle.pending_approvals(user_id, resolved)),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def get_pending_action_count(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[int]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_pending_action_count",
            call=lambda: self._lifecycle.pending_count(user_id),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def get_action_statistics(
        self, *, meta: EnvelopeMeta, user_id: str, since: datetime | None = None
    ) -> Envelope[ActionStats]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_action_statistics",
            call=lambda: self._lifecycle.stats(user_id, since),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "status"),
    )
    def get_action_history(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        status: ActionStatus | None = None,
        limit: int | None = None,
    ) -> Envelope[list[ActionLogWithType]]:
        errors = self._validate(meta=meta, user_id=user_id)
        resolved = self._resolve_limit(
            limit,
            default=self._settings.history_default_limit,
            maximum=self._settings.pending_max_limit,
            errors=errors,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_action_history",
            call=lambda: list(
                self._lifecycle.history(user_id, status=status, limit=resolved)
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "status"),
    )
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
        errors = self._validate(meta=meta, user_id=user_id)
        if to_utc(start) > to_utc(end):
            errors.append(
                validation_error(
                    "start must not be after end",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": "start"},
                )
            )
        resolved = self._resolve_limit(
            limit,
            default=self._settings.history_default_limit,
            maximum=self._settings.pending_max_limit,
            errors=errors,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_action_history_in_range",
            call=lambda: list(
                self._lifecycle.history(
                    user_id, status=status, since=start, until=end, limit=resolved
                )
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "target_type", "target_id"),
    )
    def get_actions_for_target(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        target_type: TargetType,
        target_id: str,
    ) -> Envelope[list[ActionLog]]:
        errors = self._validate(meta=meta, user_id=user_id, target_id=target_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_actions_for_target",
            call=lambda: list(
                self._lifecycle.logs_for_target(user_id, target_type, target_id)
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def get_feedback_history(
        self, *, meta: EnvelopeMeta, user_id: str, limit: int | None = None
    ) -> Envelope[list[ActionLog]]:
        errors = self._validate(meta=meta, user_id=user_id)
        resolved = self._resolve_limit(
            limit,
            default=self._settings.history_default_limit,
            maximum=self._settings.pending_max_limit,
            errors=errors,
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="get_feedback_history",
            call=lambda: list(self._lifecycle.feedback_history(user_id, resolved)),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def list_authority_settings(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[list[AuthoritySettingSummary]]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="list_authority_settings",
            call=lambda: list(self._resolver.list_settings(user_id)),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id", "action_type_name", "authority_level"),
    )
    def update_authority_setting(
        self,
        *,
        meta: EnvelopeMeta,
        user_id: str,
        action_type_name: str,
        authority_level: AuthorityLevel,
        conditions: AuthorityConditions | None = None,
    ) -> Envelope[AuthoritySetting]:
        errors = self._validate(
            meta=meta, user_id=user_id, action_type_name=action_type_name
        )
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="update_authority_setting",
            call=lambda: self._resolver.set_level(
                user_id,
                self._registry.require(action_type_name).id,
                authority_level,
                conditions,
            ),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def bulk_update_authority_settings(
        self, *, meta: EnvelopeMeta, user_id: str, updates: Sequence[SettingUpdate]
    ) -> Envelope[list[AuthoritySetting]]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="bulk_update_authority_settings",
            call=lambda: list(self._resolver.bulk_update(user_id, updates)),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def disable_all_automation(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[BulkPolicyResult]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="disable_all_automation",
            call=lambda: BulkPolicyResult(updated=self._resolver.disable_all(user_id)),
        )

    @public_api_instrumented(
        logger=_LOGGER,
        component_id=str(SERVICE_COMPONENT_ID),
        id_fields=("user_id",),
    )
    def enable_conservative_automation(
        self, *, meta: EnvelopeMeta, user_id: str
    ) -> Envelope[BulkPolicyResult]:
        errors = self._validate(meta=meta, user_id=user_id)
        if errors:
            return failure(meta=meta, errors=errors)
        return self._run(
            meta=meta,
            operation="enable_conservative_automation",
            call=lambda: BulkPolicyResult(
                updated=self._resolver.enable_conservative_defaults(user_id)
            ),
        )

    def _validate(self, *, meta: EnvelopeMeta, **required: str) -> list[ErrorDetail]:
        """Validate envelope metadata and required non-blank identifiers."""
        try:
            validate_meta(meta)
        except ValueError as exc:
            return [validation_error(str(exc), code=codes.INVALID_ARGUMENT)]
        return [
            validation_error(
                f"{name} is required",
                code=codes.INVALID_ARGUMENT,
                metadata={"field": name},
            )
            for name, value in required.items()
            if not value or not value.strip()
        ]

    def _resolve_limit(
        self,
        limit: int | None,
        *,
        default: int,
        maximum: int,
        errors: list[ErrorDetail],
    ) -> int:
        if limit is None:
            return min(default, maximum)
        if limit <= 0:
            errors.append(
                validation_error(
                    "limit must be positive",
                    code=codes.INVALID_ARGUMENT,
                    metadata={"field": "limit"},
                )
            )
            return default
        return min(limit, maximum)

    def _run(
        self, *, meta: EnvelopeMeta, operation: str, call: Callable[[], T]
    ) -> Envelope[T]:
        """Invoke ``call`` and turn engine errors into a failure envelope."""
        try:
            payload = call()
        except AuthorityEngineError as exc:
            return self._engine_failure(meta=meta, operation=operation, exc=exc)
        return success(meta=meta, payload=payload)

    def _engine_failure(
        self, *, meta: EnvelopeMeta, operation: str, exc: AuthorityEngineError
    ) -> Envelope[Any]:
        """Map one typed engine error into structured envelope errors."""
        _LOGGER.warning(
            "%s failed: error_type=%s message=%s",
            operation,
            type(exc).__name__,
            exc,
            exc_info=exc.__cause__ is not None,
        )
        return failure(meta=meta, errors=[exc.to_error_detail()])
