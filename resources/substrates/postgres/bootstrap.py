"""Create registered service schemas ahead of Alembic migrations."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Connection, text

from packages.steward_shared.manifest import ServiceManifest


@dataclass(frozen=True)
class BootstrapResult:
    """Schemas provisioned by one bootstrap pass."""

    provisioned_schemas: tuple[str, ...]


def bootstrap_service_schemas(
    *, connection: Connection, services: tuple[ServiceManifest, ...]
) -> BootstrapResult:
    """Run ``CREATE SCHEMA IF NOT EXISTS`` for every schema-owning service."""
    provisioned: list[str] = []
    for service in services:
        if not service.owns_schema:
            continue
        connection.execute(text(f"CREATE SCHEMA IF NOT EXISTS {service.schema_name}"))
        provisioned.append(service.schema_name)
    return BootstrapResult(provisioned_schemas=tuple(provisioned))
