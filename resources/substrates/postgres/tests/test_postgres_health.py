"""Tests for Postgres substrate readiness probes and error mapping."""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError, OperationalError

from packages.steward_shared.errors import ErrorCategory, codes
from resources.substrates.postgres.errors import normalize_postgres_error
from resources.substrates.postgres.health import ping


class _FakeConnection:
    """Minimal context-managed connection double capturing execute calls."""

    def __init__(self, *, fail: bool = False) -> None:
        self.calls: list[tuple[str, dict[str, object] | None]] = []
        self._fail = fail

    def __enter__(self) -> "_FakeConnection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        del exc_type, exc, tb

    def execute(self, statement, params=None) -> None:
        if self._fail:
            raise OperationalError("SELECT 1", {}, Exception("down"))
        self.calls.append((str(statement), params))


class _FakeEngine:
    """Minimal engine double exposing ``connect``."""

    def __init__(self, conn: _FakeConnection) -> None:
        self._conn = conn

    def connect(self) -> _FakeConnection:
        return self._conn


def test_ping_sets_statement_timeout_and_selects_one() -> None:
    conn = _FakeConnection()

    assert ping(_FakeEngine(conn), timeout_seconds=0.25) is True

    assert conn.calls[0][1] == {"timeout_value": "250ms"}
    assert conn.calls[1][0] == "SELECT 1"


def test_ping_reports_false_when_database_unreachable() -> None:
    assert ping(_FakeEngine(_FakeConnection(fail=True))) is False


def test_integrity_error_maps_to_conflict() -> None:
    detail = normalize_postgres_error(IntegrityError("INSERT", {}, Exception("dup")))

    assert detail.category == ErrorCategory.CONFLICT
    assert detail.code == codes.ALREADY_EXISTS


def test_operational_error_maps_to_retryable_dependency_failure() -> None:
    detail = normalize_postgres_error(OperationalError("SELECT", {}, Exception("x")))

    assert detail.category == ErrorCategory.DEPENDENCY
    assert detail.retryable is True


def test_unknown_error_maps_to_internal() -> None:
    detail = normalize_postgres_error(RuntimeError("boom"))

    assert detail.category == ErrorCategory.INTERNAL
    assert detail.metadata["exception_type"] == "RuntimeError"
