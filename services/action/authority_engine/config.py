"""Pydantic settings for Authority Engine behavior."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from packages.steward_shared.config import StewardSettings, resolve_component_settings
from services.action.authority_engine.component import SERVICE_COMPONENT_ID
from services.action.authority_engine.domain import AuthorityLevel


class AuthorityEngineSettings(BaseModel):
    """Authority Engine runtime behavior and query limits."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    seed_on_startup: bool = True
    run_migrations_on_startup: bool = False
    pending_default_limit: int = Field(default=50, gt=0)
    pending_max_limit: int = Field(default=500, gt=0)
    history_default_limit: int = Field(default=50, gt=0)
    condition_fallback_level: AuthorityLevel = "ask_first"

    @field_validator("condition_fallback_level")
    @classmethod
    def _fallback_must_restrict(cls, value: AuthorityLevel) -> AuthorityLevel:
        if value == "full_auto":
            raise ValueError("condition_fallback_level cannot be full_auto")
        return value

    @model_validator(mode="after")
    def _limits_ordered(self) -> "AuthorityEngineSettings":
        if self.pending_default_limit > self.pending_max_limit:
            raise ValueError("pending_default_limit must not exceed pending_max_limit")
        return self


def resolve_authority_engine_settings(
    settings: StewardSettings,
) -> AuthorityEngineSettings:
    """Resolve engine settings from ``components.service.authority_engine``."""
    return resolve_component_settings(
        settings=settings,
        component_id=str(SERVICE_COMPONENT_ID),
        model=AuthorityEngineSettings,
    )
