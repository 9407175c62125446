"""Action type registry over the persisted catalog."""

from __future__ import annotations

from collections.abc import Iterable

from packages.steward_shared.ids import generate_ulid_str
from packages.steward_shared.logging import get_logger, log_context
from services.action.authority_engine.catalog import (
    BUILTIN_ACTION_TYPES,
    CATALOG_VERSION,
    ActionTypeDefinition,
)
from services.action.authority_engine.domain import (
    ActionCategory,
    ActionType,
    RiskLevel,
    SeedResult,
    utc_now,
)
from services.action.authority_engine.errors import UnknownActionType
from services.action.authority_engine.interfaces import AuthorityRepository

_LOGGER = get_logger(__name__)


class ActionTypeRegistry:
    """Read-mostly access to catalogued action types.

    Lookups that miss return ``None``; use :meth:`require` when absence is an
    error.
    """

    def __init__(self, repository: AuthorityRepository) -> None:
        self._repository = repository

    def seed(
        self, definitions: Iterable[ActionTypeDefinition] = BUILTIN_ACTION_TYPES
    ) -> SeedResult:
        """Insert catalog entries missing by name; never duplicates."""
        created = 0
        existing = 0
        for definition in definitions:
            if self._repository.get_action_type_by_name(name=definition.name):
                existing += 1
                continue
            candidate = ActionType(
                id=generate_ulid_str(),
                created_at=utc_now(),
                **definition.model_dump(),
            )
            stored = self._repository.insert_action_type(action_type=candidate)
            # A concurrent seeder may have won the unique name.
            if stored.id == candidate.id:
                created += 1
            else:
                existing += 1
        with log_context(
            {"catalog_version": CATALOG_VERSION, "created": created, "existing": existing}
        ):
            _LOGGER.info("Action type catalog seeded")
        return SeedResult(created=created, existing=existing)

    def by_name(self, name: str) -> ActionType | None:
        return self._repository.get_action_type_by_name(name=name)

    def by_id(self, action_type_id: str) -> ActionType | None:
        return self._repository.get_action_type(action_type_id=action_type_id)

    def all(self) -> tuple[ActionType, ...]:
        return self._repository.list_action_types()

    def by_category(self, category: ActionCategory) -> tuple[ActionType, ...]:
        return self._repository.list_action_types(category=category)

    def by_risk_level(self, risk_level: RiskLevel) -> tuple[ActionType, ...]:
        return self._repository.list_action_types(risk_level=risk_level)

    def require(self, name: str) -> ActionType:
        """Return the named action type or raise ``UnknownActionType``."""
        action_type = self.by_name(name)
        if action_type is None:
            raise UnknownActionType(name)
        return action_type

    def require_id(self, action_type_id: str) -> ActionType:
        """Return the action type with this id or raise ``UnknownActionType``."""
        action_type = self.by_id(action_type_id)
        if action_type is None:
            raise UnknownActionType(action_type_id)
        return action_type
