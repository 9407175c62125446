"""Process startup for the Authority Engine: logging, migrations, then service."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from packages.steward_shared.config import StewardSettings, load_settings
from packages.steward_shared.logging import configure_logging, get_logger, log_context
from resources.substrates.postgres.migrations import (
    MigrationRunResult,
    run_service_migrations,
)
from services.action.authority_engine.component import MANIFEST
from services.action.authority_engine.config import resolve_authority_engine_settings
from services.action.authority_engine.service import (
    AuthorityEngineService,
    build_authority_engine_service,
)

_LOGGER = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class AuthorityEngineStartupResult:
    """Built service plus the migration pass that preceded it, if any."""

    service: AuthorityEngineService
    migration_result: MigrationRunResult | None


def start_authority_engine(
    *,
    settings: StewardSettings | None = None,
    run_migrations: bool | None = None,
    migration_runner: Callable[..., MigrationRunResult] = run_service_migrations,
    service_builder: Callable[..., AuthorityEngineService] = build_authority_engine_service,
) -> AuthorityEngineStartupResult:
    """Configure logging, optionally migrate, then build the service.

    ``run_migrations`` overrides ``run_migrations_on_startup`` when given.
    """
    resolved = settings or load_settings()
    configure_logging(
        level=resolved.logging.level,
        json_output=resolved.logging.json_output,
        service=resolved.logging.service,
        environment=resolved.logging.environment,
    )

    engine_settings = resolve_authority_engine_settings(resolved)
    execute_migrations = (
        engine_settings.run_migrations_on_startup
        if run_migrations is None
        else run_migrations
    )
    migration_result: MigrationRunResult | None = None
    if execute_migrations:
        migration_result = migration_runner(settings=resolved, services=(MANIFEST,))

    service = service_builder(settings=resolved)
    with log_context(
        {
            "component_id": str(MANIFEST.id),
            "migrations_run": execute_migrations,
            "seed_on_startup": engine_settings.seed_on_startup,
        }
    ):
        _LOGGER.info("Authority Engine started")
    return AuthorityEngineStartupResult(
        service=service, migration_result=migration_result
    )
