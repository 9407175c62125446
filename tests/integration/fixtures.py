"""Ephemeral Postgres container fixtures for integration tests."""

from __future__ import annotations

import os
import socket
import subprocess
import time
from collections.abc import Iterator
from dataclasses import dataclass

import pytest
from sqlalchemy import create_engine

from packages.steward_shared.config import PostgresSettings, StewardSettings
from resources.substrates.postgres.migrations import run_service_migrations
from services.action.authority_engine.component import MANIFEST
from tests.integration.helpers import real_provider_tests_enabled

_DEFAULT_POSTGRES_IMAGE = "postgres:16"
_IMAGE_ENV = "STEWARD_TEST_POSTGRES_IMAGE"
_URL_ENV = "STEWARD_POSTGRES__URL"


def _postgres_image() -> str:
    """Resolve the Postgres image, overridable from the environment."""
    return os.getenv(_IMAGE_ENV, "").strip() or _DEFAULT_POSTGRES_IMAGE


@dataclass(frozen=True, slots=True)
class RunningContainer:
    """Lightweight handle for a running temporary Docker container."""

    container_id: str
    host: str
    port: int


def _run_command(*args: str) -> subprocess.CompletedProcess[str]:
    return subprocess.run(args, check=True, capture_output=True, text=True)


def _docker_available() -> bool:
    try:
        _run_command("docker", "version")
    except (FileNotFoundError, subprocess.CalledProcessError):
        return False
    return True


def _wait_for_tcp(host: str, port: int, *, timeout_seconds: float = 30.0) -> None:
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        try:
            with socket.create_connection((host, port), timeout=0.5):
                return
        except OSError:
            time.sleep(0.2)
    raise TimeoutError(f"timed out waiting for TCP endpoint {host}:{port}")


def _wait_for_postgres_ready(dsn: str, *, timeout_seconds: float = 60.0) -> None:
    """Wait until Postgres accepts SQL from the host side."""
    deadline = time.monotonic() + timeout_seconds
    while time.monotonic() < deadline:
        engine = create_engine(dsn, pool_pre_ping=True)
        try:
            with engine.connect() as conn:
                conn.exec_driver_sql("SELECT 1")
            return
        except Exception:  # noqa: BLE001
            time.sleep(0.2)
        finally:
            engine.dispose()
    raise TimeoutError("timed out waiting for Postgres readiness")


def _start_postgres() -> RunningContainer:
    run_result = _run_command(
        "docker",
        "run",
        "--detach",
        "--rm",
        "--publish",
        "127.0.0.1::5432",
        "--env",
        "POSTGRES_USER=steward",
        "--env",
        "POSTGRES_PASSWORD=steward",
        "--env",
        "POSTGRES_DB=steward",
        _postgres_image(),
    )
    container_id = run_result.stdout.strip()
    port_result = _run_command("docker", "port", container_id, "5432/tcp")
    host, port = port_result.stdout.strip().splitlines()[0].rsplit(":", maxsplit=1)
    _wait_for_tcp(host, int(port))
    return RunningContainer(container_id=container_id, host=host, port=int(port))


@pytest.fixture(scope="session")
def postgres_dsn() -> Iterator[str]:
    """Yield one temporary Postgres DSN for integration tests."""
    if not real_provider_tests_enabled():
        pytest.skip("real-provider integration tests disabled")
    if not _docker_available():
        pytest.skip("docker unavailable for integration tests")
    container = _start_postgres()
    dsn = f"postgresql+psycopg://steward:steward@{container.host}:{container.port}/steward"
    try:
        _wait_for_postgres_ready(dsn)
        yield dsn
    finally:
        subprocess.run(
            ("docker", "stop", container.container_id),
            check=False,
            capture_output=True,
            text=True,
        )


@pytest.fixture(scope="session")
def integration_settings(postgres_dsn: str) -> StewardSettings:
    """Return settings bound to the temporary Postgres."""
    return StewardSettings(postgres=PostgresSettings(url=postgres_dsn, sslmode="disable"))


@pytest.fixture(scope="session")
def migrated_integration_settings(
    integration_settings: StewardSettings,
) -> StewardSettings:
    """Run Authority Engine migrations against temporary Postgres."""
    previous = os.environ.get(_URL_ENV)
    os.environ[_URL_ENV] = integration_settings.postgres.url
    try:
        run_service_migrations(settings=integration_settings, services=(MANIFEST,))
    finally:
        if previous is None:
            os.environ.pop(_URL_ENV, None)
        else:
            os.environ[_URL_ENV] = previous
    return integration_settings
