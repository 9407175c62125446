"""Authority Engine package exports."""

from packages.steward_shared.envelope import Envelope, EnvelopeKind, EnvelopeMeta
from packages.steward_shared.errors import ErrorCategory, ErrorDetail
from services.action.authority_engine.catalog import (
    BUILTIN_ACTION_TYPES,
    CATALOG_VERSION,
    ActionTypeDefinition,
)
from services.action.authority_engine.component import MANIFEST
from services.action.authority_engine.conditions import (
    evaluate_conditions,
    severity,
    tighten,
)
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
    ActionDecision,
    ActionLog,
    ActionLogMetadata,
    ActionRequest,
    ActionStats,
    ActionType,
    AuthorityCheckResult,
    AuthorityConditions,
    AuthorityEngineHealthStatus,
    AuthoritySetting,
    AuthoritySettingSummary,
    BatchApprovalResult,
    BatchRejectionResult,
    BulkPolicyResult,
    ConditionContext,
    ConditionResult,
    ConfidenceFactor,
    CustomRule,
    EffectiveAuthority,
    ExecutionReport,
    ExecutionResult,
    InitializationResult,
    SeedResult,
    SettingUpdate,
    TimeWindow,
)
from services.action.authority_engine.errors import (
    ActionLogNotFound,
    AuthorityEngineError,
    ExecutionFailure,
    InvalidStateTransition,
    IrreversibleAction,
    PersistenceError,
    UnknownActionType,
)
from services.action.authority_engine.implementation import (
    DefaultAuthorityEngineService,
)
from services.action.authority_engine.interfaces import AuthorityRepository
from services.action.authority_engine.lifecycle import (
    ActionExecutor,
    ActionLogStateMachine,
)
from services.action.authority_engine.pipeline import DecisionPipeline
from services.action.authority_engine.registry import ActionTypeRegistry
from services.action.authority_engine.resolver import AuthorityResolver
from services.action.authority_engine.service import (
    AuthorityEngineService,
    build_authority_engine_service,
)

__all__ = [
    "ActionDecision",
    "ActionExecutor",
    "ActionLog",
    "ActionLogMetadata",
    "ActionLogNotFound",
    "ActionLogStateMachine",
    "ActionRequest",
    "ActionStats",
    "ActionType",
    "ActionTypeDefinition",
    "ActionTypeRegistry",
    "AuthorityCheckResult",
    "AuthorityConditions",
    "AuthorityEngineError",
    "AuthorityEngineHealthStatus",
    "AuthorityEnginePostgresRuntime",
    "AuthorityEngineService",
    "AuthorityEngineSettings",
    "AuthorityRepository",
    "AuthorityResolver",
    "AuthoritySetting",
    "AuthoritySettingSummary",
    "BUILTIN_ACTION_TYPES",
    "BatchApprovalResult",
    "BatchRejectionResult",
    "BulkPolicyResult",
    "CATALOG_VERSION",
    "ConditionContext",
    "ConditionResult",
    "ConfidenceFactor",
    "CustomRule",
    "DecisionPipeline",
    "DefaultAuthorityEngineService",
    "EffectiveAuthority",
    "Envelope",
    "EnvelopeKind",
    "EnvelopeMeta",
    "ErrorCategory",
    "ErrorDetail",
    "ExecutionFailure",
    "ExecutionReport",
    "ExecutionResult",
    "InMemoryAuthorityRepository",
    "InitializationResult",
    "InvalidStateTransition",
    "IrreversibleAction",
    "MANIFEST",
    "PersistenceError",
    "SeedResult",
    "SettingUpdate",
    "SqlAuthorityRepository",
    "TimeWindow",
    "UnknownActionType",
    "build_authority_engine_service",
    "evaluate_conditions",
    "resolve_authority_engine_settings",
    "severity",
    "tighten",
]
