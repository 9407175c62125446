"""SQLAlchemy engine construction for the Postgres substrate."""

from __future__ import annotations

from sqlalchemy import Engine, create_engine

from packages.steward_shared.config import PostgresSettings


def create_postgres_engine(config: PostgresSettings) -> Engine:
    """Build a pooled psycopg engine.

    ``statement_timeout`` is set per connection so no single statement,
    including the status-guarded updates behind action execution, can hold a
    caller indefinitely.
    """
    statement_timeout_ms = max(1, int(config.statement_timeout_seconds * 1000))
    return create_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout_seconds,
        pool_pre_ping=config.pool_pre_ping,
        connect_args={
            "connect_timeout": int(config.connect_timeout_seconds),
            "sslmode": config.sslmode,
            "options": f"-c statement_timeout={statement_timeout_ms}",
        },
    )
