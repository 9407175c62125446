"""Decision pipeline turning action requests into audited action logs."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from packages.steward_shared.envelope import to_utc
from packages.steward_shared.ids import generate_ulid_str
from packages.steward_shared.logging import fields, get_logger, log_context
from services.action.authority_engine.conditions import evaluate_conditions, tighten
from services.action.authority_engine.domain import (
    ActionDecision,
    ActionLog,
    ActionLogMetadata,
    ActionRequest,
    ActionStatus,
    AuthorityCheckResult,
    AuthorityLevel,
    ConditionContext,
    utc_now,
)
from services.action.authority_engine.interfaces import AuthorityRepository
from services.action.authority_engine.registry import ActionTypeRegistry
from services.action.authority_engine.resolver import AuthorityResolver

_LOGGER = get_logger(__name__)

REASON_DISABLED = "Action type is disabled"
REASON_DISABLED_FOR_USER = "Action type is disabled for this user"
REASON_AUTO_EXECUTE = "Action approved for automatic execution"
REASON_REQUIRES_APPROVAL = "Action requires user approval"


class DecisionPipeline:
    """Resolve authority, evaluate conditions and record the decision."""

    def __init__(
        self,
        *,
        repository: AuthorityRepository,
        registry: ActionTypeRegistry,
        resolver: AuthorityResolver,
        fallback_level: AuthorityLevel = "ask_first",
    ) -> None:
        self._repository = repository
        self._registry = registry
        self._resolver = resolver
        self._fallback_level = fallback_level

    def check_authority(
        self,
        user_id: str,
        action_type_name: str,
        context: ConditionContext | None = None,
    ) -> AuthorityCheckResult:
        """Return effective authority and whether its conditions hold.

        Raises ``UnknownActionType`` for names missing from the registry.
        """
        action_type = self._registry.require(action_type_name)
        effective = self._resolver.effective_authority(user_id, action_type.id)
        if effective.level == "disabled":
            return AuthorityCheckResult(
                authority_level=effective.level,
                is_user_override=effective.is_user_override,
                conditions=effective.conditions,
                conditions_met=False,
                conditions_failure_reason=REASON_DISABLED,
            )
        result = evaluate_conditions(effective.conditions, context)
        return AuthorityCheckResult(
            authority_level=effective.level,
            is_user_override=effective.is_user_override,
            conditions=effective.conditions,
            conditions_met=result.met,
            conditions_failure_reason=result.reason,
        )

    def process_action_request(
        self,
        user_id: str,
        request: ActionRequest,
        *,
        now: datetime | None = None,
    ) -> ActionDecision:
        """Decide one request and persist its action log.

        Unknown and disabled action types yield a non-executing decision with
        no log. A condition failure only ever tightens the applied level.
        """
        action_type = self._registry.by_name(request.action_type_name)
        if action_type is None:
            return ActionDecision(
                should_execute=False,
                authority_level="disabled",
                requires_approval=False,
                reason=f"Unknown action type: {request.action_type_name}",
            )

        current = utc_now() if now is None else to_utc(now)
        check = self.check_authority(
            user_id,
            action_type.name,
            _pipeline_context(request=request, now=current),
        )
        if check.authority_level == "disabled":
            return ActionDecision(
                should_execute=False,
                authority_level="disabled",
                requires_approval=False,
                reason=REASON_DISABLED_FOR_USER,
            )

        applied = check.authority_level
        if not check.conditions_met:
            applied = tighten(check.authority_level, self._fallback_level)
            with log_context(
                {
                    fields.USER_ID: user_id,
                    fields.ACTION_TYPE: action_type.name,
                    "configured_level": check.authority_level,
                    fields.AUTHORITY_LEVEL: applied,
                    "condition_reason": check.conditions_failure_reason,
                }
            ):
                _LOGGER.info("Authority conditions not met; level tightened")

        should_execute = applied == "full_auto"
        status: ActionStatus = "approved" if should_execute else "pending_approval"
        metadata = (request.metadata or ActionLogMetadata()).model_copy(
            update={"triggered_by": "auto"}
        )
        log = self._repository.insert_action_log(
            log=ActionLog(
                id=generate_ulid_str(),
                user_id=user_id,
                action_type_id=action_type.id,
                authority_level=applied,
                status=status,
                target_type=request.target_type,
                target_id=request.target_id,
                description=request.description,
                payload=dict(request.payload),
                confidence_score=request.confidence_score,
                metadata=metadata,
                created_at=current,
                approved_at=current if should_execute else None,
            )
        )
        with log_context(
            {
                fields.USER_ID: user_id,
                fields.ACTION_LOG_ID: log.id,
                fields.ACTION_TYPE: action_type.name,
                fields.AUTHORITY_LEVEL: applied,
                fields.STATUS_TO: status,
            }
        ):
            _LOGGER.info("Action request decided")

        if should_execute:
            reason = REASON_AUTO_EXECUTE
        elif check.conditions_met:
            reason = REASON_REQUIRES_APPROVAL
        else:
            reason = f"{REASON_REQUIRES_APPROVAL}: {check.conditions_failure_reason}"
        return ActionDecision(
            should_execute=should_execute,
            authority_level=applied,
            requires_approval=not should_execute,
            action_log=log,
            reason=reason,
        )


def _pipeline_context(*, request: ActionRequest, now: datetime) -> ConditionContext:
    values: dict[str, Any] = {"current_time": now}
    if request.confidence_score is not None:
        values["importance_score"] = request.confidence_score
    if request.context is not None:
        values.update(request.context.model_dump(exclude_none=True))
    return ConditionContext.model_validate(values)
