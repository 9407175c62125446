"""Per-user authority resolution and bulk policy procedures."""

from __future__ import annotations

from collections.abc import Iterable

from packages.steward_shared.logging import fields, get_logger, log_context
from services.action.authority_engine.domain import (
    ActionType,
    AuthorityConditions,
    AuthorityLevel,
    AuthoritySetting,
    AuthoritySettingSummary,
    EffectiveAuthority,
    SettingSource,
    SettingUpdate,
)
from services.action.authority_engine.interfaces import AuthorityRepository
from services.action.authority_engine.registry import ActionTypeRegistry

_LOGGER = get_logger(__name__)

_CONSERVATIVE_LEVELS: dict[str, AuthorityLevel] = {
    "high": "ask_first",
    "medium": "draft_approve",
}


class AuthorityResolver:
    """Merge per-user overrides with action type defaults.

    Stateless between calls; every read goes to the repository, so concurrent
    use across users needs no coordination.
    """

    def __init__(
        self, *, repository: AuthorityRepository, registry: ActionTypeRegistry
    ) -> None:
        self._repository = repository
        self._registry = registry

    def effective_authority(
        self, user_id: str, action_type_id: str
    ) -> EffectiveAuthority:
        """Return the user's override when present, else the type default."""
        setting = self._repository.get_setting(
            user_id=user_id, action_type_id=action_type_id
        )
        if setting is not None:
            return EffectiveAuthority(
                level=setting.authority_level,
                is_user_override=True,
                conditions=setting.conditions,
            )
        action_type = self._registry.require_id(action_type_id)
        return EffectiveAuthority(
            level=action_type.default_authority_level,
            is_user_override=False,
            conditions=None,
        )

    def initialize_for_user(self, user_id: str) -> int:
        """Create a default-mirroring setting for each type the user lacks.

        Types added to the catalog later are not picked up until this runs
        again for the user.
        """
        created = 0
        for action_type in self._registry.all():
            inserted = self._repository.insert_setting_if_absent(
                user_id=user_id,
                action_type_id=action_type.id,
                authority_level=action_type.default_authority_level,
                updated_by="system",
            )
            if inserted is not None:
                created += 1
        with log_context({fields.USER_ID: user_id, "settings_created": created}):
            _LOGGER.info("Authority settings initialized")
        return created

    def set_level(
        self,
        user_id: str,
        action_type_id: str,
        level: AuthorityLevel,
        conditions: AuthorityConditions | None = None,
        *,
        updated_by: SettingSource = "user",
    ) -> AuthoritySetting:
        """Upsert one override; ``conditions`` replaces any stored conditions."""
        self._registry.require_id(action_type_id)
        setting = self._repository.upsert_setting(
            user_id=user_id,
            action_type_id=action_type_id,
            authority_level=level,
            conditions=conditions,
            updated_by=updated_by,
        )
        with log_context(
            {
                fields.USER_ID: user_id,
                fields.ACTION_TYPE: action_type_id,
                fields.AUTHORITY_LEVEL: level,
                "updated_by": updated_by,
            }
        ):
            _LOGGER.info("Authority setting updated")
        return setting

    def bulk_update(
        self, user_id: str, updates: Iterable[SettingUpdate]
    ) -> tuple[AuthoritySetting, ...]:
        """Apply several name-addressed overrides in order.

        Every name is resolved before anything is written, so an unknown name
        leaves all settings untouched.
        """
        resolved = [
            (self._registry.require(update.action_type_name), update)
            for update in updates
        ]
        return tuple(
            self.set_level(
                user_id,
                action_type.id,
                update.authority_level,
                update.conditions,
            )
            for action_type, update in resolved
        )

    def disable_all(self, user_id: str) -> int:
        """Emergency stop: force every action type to ``disabled``.

        Stored conditions are kept so the user's policy survives re-enabling.
        """
        updated = 0
        for action_type in self._registry.all():
            self._repository.upsert_setting(
                user_id=user_id,
                action_type_id=action_type.id,
                authority_level="disabled",
                conditions=None,
                updated_by="emergency_stop",
                keep_conditions=True,
            )
            updated += 1
        with log_context({fields.USER_ID: user_id, "updated": updated}):
            _LOGGER.warning("All automation disabled")
        return updated

    def enable_conservative_defaults(self, user_id: str) -> int:
        """Reset every type by risk: high asks first, medium drafts, low defaults.

        Overwrites all existing overrides and clears their conditions.
        """
        updated = 0
        for action_type in self._registry.all():
            self._repository.upsert_setting(
                user_id=user_id,
                action_type_id=action_type.id,
                authority_level=conservative_level(action_type),
                conditions=None,
                updated_by="conservative_reset",
            )
            updated += 1
        with log_context({fields.USER_ID: user_id, "updated": updated}):
            _LOGGER.info("Conservative automation defaults applied")
        return updated

    def list_settings(self, user_id: str) -> tuple[AuthoritySettingSummary, ...]:
        """Return every action type with the user's effective authority."""
        by_type = {
            setting.action_type_id: setting
            for setting in self._repository.list_settings(user_id=user_id)
        }
        summaries: list[AuthoritySettingSummary] = []
        for action_type in self._registry.all():
            setting = by_type.get(action_type.id)
            if setting is None:
                summaries.append(
                    AuthoritySettingSummary(
                        action_type=action_type,
                        authority_level=action_type.default_authority_level,
                        is_user_override=False,
                    )
                )
                continue
            summaries.append(
                AuthoritySettingSummary(
                    action_type=action_type,
                    authority_level=setting.authority_level,
                    is_user_override=True,
                    conditions=setting.conditions,
                    updated_at=setting.updated_at,
                    updated_by=setting.updated_by,
                )
            )
        return tuple(summaries)


def conservative_level(action_type: ActionType) -> AuthorityLevel:
    """Authority level a conservative reset assigns to ``action_type``."""
    return _CONSERVATIVE_LEVELS.get(
        action_type.risk_level, action_type.default_authority_level
    )
