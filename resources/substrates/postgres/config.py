"""Postgres settings resolution."""

from __future__ import annotations

from packages.steward_shared.config import PostgresSettings, StewardSettings


def resolve_postgres_settings(settings: StewardSettings) -> PostgresSettings:
    """Return the validated ``postgres`` subtree of root settings."""
    return settings.postgres
