"""Startup migration orchestration for schema-owning services."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config

from packages.steward_shared.config import StewardSettings
from packages.steward_shared.logging import get_logger, log_context
from packages.steward_shared.manifest import ServiceManifest
from resources.substrates.postgres.bootstrap import bootstrap_service_schemas
from resources.substrates.postgres.config import resolve_postgres_settings
from resources.substrates.postgres.engine import create_postgres_engine

_LOGGER = get_logger(__name__)

_REPO_ROOT = Path(__file__).resolve().parents[3]


class MigrationExecutionError(RuntimeError):
    """Raised when one service's Alembic upgrade fails."""


@dataclass(frozen=True, slots=True)
class MigrationRunResult:
    """Summary of one startup migration pass."""

    provisioned_schemas: tuple[str, ...]
    executed_alembic_configs: tuple[str, ...]


def discover_migration_configs(
    services: tuple[ServiceManifest, ...], *, repo_root: Path | None = None
) -> tuple[Path, ...]:
    """Return each service's ``migrations/alembic.ini`` that exists on disk."""
    root = (repo_root or _REPO_ROOT).resolve()
    paths: list[Path] = []
    for service in services:
        for module_root in sorted(service.module_roots):
            candidate = root / Path(*module_root.split(".")) / "migrations" / "alembic.ini"
            if candidate.exists():
                paths.append(candidate)
                break
    return tuple(paths)


def run_service_migrations(
    *,
    settings: StewardSettings,
    services: tuple[ServiceManifest, ...],
    repo_root: Path | None = None,
    upgrade_fn: Callable[[Config, str], None] = command.upgrade,
) -> MigrationRunResult:
    """Provision service schemas, then upgrade every service to ``head``.

    Alembic environments read the database URL from settings themselves, so
    ``settings`` must resolve to the same database as the process env.
    """
    engine = create_postgres_engine(resolve_postgres_settings(settings))
    try:
        with engine.begin() as connection:
            bootstrap = bootstrap_service_schemas(
                connection=connection, services=services
            )
    finally:
        engine.dispose()

    executed: list[str] = []
    for config_path in discover_migration_configs(services, repo_root=repo_root):
        try:
            upgrade_fn(Config(str(config_path)), "head")
        except Exception as exc:
            raise MigrationExecutionError(
                f"migration failed for config '{config_path}'"
            ) from exc
        executed.append(str(config_path))

    with log_context(
        {
            "provisioned_schemas": ",".join(bootstrap.provisioned_schemas),
            "migrations": len(executed),
        }
    ):
        _LOGGER.info("Service migrations applied")
    return MigrationRunResult(
        provisioned_schemas=bootstrap.provisioned_schemas,
        executed_alembic_configs=tuple(executed),
    )
