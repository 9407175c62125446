"""Canonical structured-log field names."""

TIMESTAMP = "timestamp"
LEVEL = "level"
LOGGER = "logger"
MESSAGE = "message"
EVENT = "event"

TRACE_ID = "trace_id"
ENVELOPE_ID = "envelope_id"
PRINCIPAL = "principal"

COMPONENT_ID = "component_id"
API_NAME = "api_name"
PUBLIC_API_INVOCATION_EVENT = "public_api_invocation"
PUBLIC_API_COMPLETION_EVENT = "public_api_completion"
PUBLIC_API_INSTRUMENTATION_FAILURE_EVENT = "public_api_instrumentation_failure"
SUCCESS = "success"
DURATION_MS = "duration_ms"
ERRORS = "errors"
OUTCOME = "outcome"
ERROR_CATEGORY = "error_category"
STAGE = "stage"
CONCERN = "concern"

USER_ID = "user_id"
ACTION_LOG_ID = "action_log_id"
ACTION_TYPE = "action_type"
AUTHORITY_LEVEL = "authority_level"
STATUS_FROM = "status_from"
STATUS_TO = "status_to"

SERVICE = "service"
ENVIRONMENT = "environment"
