"""Sessions pinned to one service-owned schema."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from resources.substrates.postgres.session import transactional_session


class SessionProvider(Protocol):
    """Anything that can hand out one transactional session at a time."""

    def session(self) -> Iterator[Session]:
        """Yield a session inside one transaction."""


class ServiceSchemaSessionProvider:
    """Transactional sessions with ``search_path`` set to the owned schema."""

    def __init__(self, *, session_factory: sessionmaker[Session], schema: str) -> None:
        if not schema or not schema.replace("_", "").isalnum():
            raise ValueError("postgres schema must be non-empty alphanumeric/underscore")
        self._session_factory = session_factory
        self._schema = schema

    @property
    def schema(self) -> str:
        return self._schema

    @contextmanager
    def session(self) -> Iterator[Session]:
        with transactional_session(self._session_factory) as db:
            db.execute(text(f"SET LOCAL search_path TO {self._schema}, public"))
            yield db


class PlainSessionProvider:
    """Transactional sessions with no schema pinning (SQLite, test engines)."""

    def __init__(self, *, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def session(self) -> Iterator[Session]:
        with transactional_session(self._session_factory) as db:
            yield db
