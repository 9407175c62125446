"""Settings loading entry point."""

from __future__ import annotations

from pathlib import Path
from typing import Any, ClassVar

from .models import StewardSettings


def load_settings(
    *, config_path: str | Path | None = None, **overrides: Any
) -> StewardSettings:
    """Load settings, optionally from a non-default YAML path.

    Keyword ``overrides`` take precedence over environment and file values.
    """
    if config_path is None:
        return StewardSettings(**overrides)

    class _PathBoundSettings(StewardSettings):
        _config_path: ClassVar[Path] = Path(config_path)

    return _PathBoundSettings(**overrides)
