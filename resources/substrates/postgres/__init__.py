"""Shared Postgres substrate primitives for Steward services."""

from resources.substrates.postgres.bootstrap import (
    BootstrapResult,
    bootstrap_service_schemas,
)
from resources.substrates.postgres.component import MANIFEST, RESOURCE_COMPONENT_ID
from resources.substrates.postgres.config import resolve_postgres_settings
from resources.substrates.postgres.engine import create_postgres_engine
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping
from resources.substrates.postgres.schema_session import (
    PlainSessionProvider,
    ServiceSchemaSessionProvider,
    SessionProvider,
)
from resources.substrates.postgres.session import (
    create_session_factory,
    transactional_session,
)

__all__ = [
    "BootstrapResult",
    "MANIFEST",
    "PlainSessionProvider",
    "RESOURCE_COMPONENT_ID",
    "ServiceSchemaSessionProvider",
    "SessionProvider",
    "bootstrap_service_schemas",
    "create_postgres_engine",
    "create_session_factory",
    "normalize_postgres_error",
    "ping",
    "resolve_postgres_settings",
    "transactional_session",
]
