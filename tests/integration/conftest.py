"""Shared fixtures for integration-oriented test modules."""

from __future__ import annotations

import pytest

from packages.steward_shared.config import StewardSettings, load_settings


@pytest.fixture(scope="session")
def env_settings() -> StewardSettings:
    """Return loaded settings snapshot for fixture consumers."""
    return load_settings()
