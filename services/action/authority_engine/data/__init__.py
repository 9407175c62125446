"""Authority Engine data layer exports."""

from services.action.authority_engine.data.repository import (
    InMemoryAuthorityRepository,
    SqlAuthorityRepository,
)
from services.action.authority_engine.data.runtime import (
    AuthorityEnginePostgresRuntime,
    authority_engine_postgres_schema,
)
from services.action.authority_engine.data.schema import (
    action_logs,
    action_types,
    authority_settings,
    metadata,
)

__all__ = [
    "AuthorityEnginePostgresRuntime",
    "InMemoryAuthorityRepository",
    "SqlAuthorityRepository",
    "action_logs",
    "action_types",
    "authority_engine_postgres_schema",
    "authority_settings",
    "metadata",
]
