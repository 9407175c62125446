"""Unit tests for the action type registry and authority resolver."""

from __future__ import annotations

import pytest

from services.action.authority_engine.catalog import (
    BUILTIN_ACTION_TYPES,
    ActionTypeDefinition,
)
from services.action.authority_engine.data.repository import (
    InMemoryAuthorityRepository,
)
from services.action.authority_engine.domain import (
    AuthorityConditions,
    SettingUpdate,
)
from services.action.authority_engine.errors import UnknownActionType
from services.action.authority_engine.registry import ActionTypeRegistry
from services.action.authority_engine.resolver import (
    AuthorityResolver,
    conservative_level,
)


def _seeded() -> tuple[InMemoryAuthorityRepository, ActionTypeRegistry, AuthorityResolver]:
    repository = InMemoryAuthorityRepository()
    registry = ActionTypeRegistry(repository)
    registry.seed()
    return repository, registry, AuthorityResolver(
        repository=repository, registry=registry
    )


def test_seed_is_idempotent_by_name() -> None:
    repository = InMemoryAuthorityRepository()
    registry = ActionTypeRegistry(repository)

    first = registry.seed()
    second = registry.seed()

    assert (first.created, first.existing) == (len(BUILTIN_ACTION_TYPES), 0)
    assert (second.created, second.existing) == (0, len(BUILTIN_ACTION_TYPES))
    assert len(registry.all()) == len(BUILTIN_ACTION_TYPES)


def test_builtin_catalog_carries_expected_policy_defaults() -> None:
    _, registry, _ = _seeded()

    spam = registry.require("decline_spam_meeting")
    delegate = registry.require("delegate_task")

    assert (spam.category, spam.risk_level, spam.default_authority_level) == (
        "calendar",
        "low",
        "full_auto",
    )
    assert spam.reversible is True
    assert delegate.default_authority_level == "ask_first"
    assert delegate.reversible is False


def test_lookups_miss_quietly_and_require_raises() -> None:
    _, registry, _ = _seeded()

    assert registry.by_name("send_fax") is None
    assert registry.by_id("missing") is None
    with pytest.raises(UnknownActionType):
        registry.require("send_fax")


def test_category_and_risk_filters() -> None:
    _, registry, _ = _seeded()

    calendar = registry.by_category("calendar")
    high = registry.by_risk_level("high")

    assert {item.name for item in calendar} == {
        "decline_spam_meeting",
        "decline_low_priority_meeting",
        "reschedule_meeting",
        "protect_focus_time",
    }
    assert {item.name for item in high} == {"reply_decline_request", "delegate_task"}
    assert registry.by_category("notification") == ()


def test_effective_authority_falls_back_to_type_default() -> None:
    _, registry, resolver = _seeded()
    action_type = registry.require("reschedule_meeting")

    effective = resolver.effective_authority("user-1", action_type.id)

    assert effective.level == "draft_approve"
    assert effective.is_user_override is False
    assert effective.conditions is None


def test_effective_authority_prefers_user_override() -> None:
    _, registry, resolver = _seeded()
    action_type = registry.require("reschedule_meeting")
    conditions = AuthorityConditions(vip_only=True)

    resolver.set_level("user-1", action_type.id, "full_auto", conditions)
    effective = resolver.effective_authority("user-1", action_type.id)
    other_user = resolver.effective_authority("user-2", action_type.id)

    assert effective.level == "full_auto"
    assert effective.is_user_override is True
    assert effective.conditions == conditions
    assert other_user.is_user_override is False


def test_set_level_upserts_single_row_per_pair() -> None:
    repository, registry, resolver = _seeded()
    action_type = registry.require("follow_up_nudge")

    first = resolver.set_level("user-1", action_type.id, "full_auto")
    second = resolver.set_level("user-1", action_type.id, "ask_first")

    assert first.id == second.id
    assert second.authority_level == "ask_first"
    assert len(repository.list_settings(user_id="user-1")) == 1


def test_set_level_rejects_unknown_action_type_id() -> None:
    _, _, resolver = _seeded()

    with pytest.raises(UnknownActionType):
        resolver.set_level("user-1", "missing", "full_auto")


def test_initialize_creates_only_missing_settings() -> None:
    _, registry, resolver = _seeded()
    resolver.set_level(
        "user-1", registry.require("delegate_task").id, "disabled"
    )

    created = resolver.initialize_for_user("user-1")
    again = resolver.initialize_for_user("user-1")

    assert created == len(BUILTIN_ACTION_TYPES) - 1
    assert again == 0
    delegate = resolver.effective_authority(
        "user-1", registry.require("delegate_task").id
    )
    assert delegate.level == "disabled"


def test_initialize_needs_rerun_for_types_added_later() -> None:
    _, registry, resolver = _seeded()
    resolver.initialize_for_user("user-1")
    registry.seed(
        [
            ActionTypeDefinition(
                name="send_digest",
                description="Send a weekly digest",
                category="notification",
                risk_level="low",
                default_authority_level="full_auto",
                reversible=False,
            )
        ]
    )

    assert resolver.initialize_for_user("user-1") == 1


def test_disable_all_is_idempotent_and_keeps_conditions() -> None:
    repository, registry, resolver = _seeded()
    nudge = registry.require("follow_up_nudge")
    conditions = AuthorityConditions(min_confidence=0.5)
    resolver.set_level("user-1", nudge.id, "full_auto", conditions)

    first = resolver.disable_all("user-1")
    second = resolver.disable_all("user-1")

    assert first == second == len(BUILTIN_ACTION_TYPES)
    settings = repository.list_settings(user_id="user-1")
    assert {setting.authority_level for setting in settings} == {"disabled"}
    assert {setting.updated_by for setting in settings} == {"emergency_stop"}
    stored = repository.get_setting(user_id="user-1", action_type_id=nudge.id)
    assert stored is not None
    assert stored.conditions == conditions


def test_conservative_defaults_overwrite_by_risk() -> None:
    repository, registry, resolver = _seeded()
    for action_type in registry.all():
        resolver.set_level(
            "user-1",
            action_type.id,
            "full_auto",
            AuthorityConditions(vip_only=True),
        )

    updated = resolver.enable_conservative_defaults("user-1")

    assert updated == len(BUILTIN_ACTION_TYPES)
    for action_type in registry.all():
        effective = resolver.effective_authority("user-1", action_type.id)
        assert effective.level == conservative_level(action_type)
        assert effective.conditions is None
    assert resolver.effective_authority(
        "user-1", registry.require("delegate_task").id
    ).level == "ask_first"
    assert resolver.effective_authority(
        "user-1", registry.require("reschedule_meeting").id
    ).level == "draft_approve"
    assert resolver.effective_authority(
        "user-1", registry.require("snooze_commitment").id
    ).level == "full_auto"
    assert {
        setting.updated_by for setting in repository.list_settings(user_id="user-1")
    } == {"conservative_reset"}


def test_conservative_defaults_scenario_three_types() -> None:
    repository = InMemoryAuthorityRepository()
    registry = ActionTypeRegistry(repository)
    registry.seed(
        [
            ActionTypeDefinition(
                name="send_email_reply",
                description="",
                category="email",
                risk_level="high",
                default_authority_level="ask_first",
                reversible=False,
            ),
            ActionTypeDefinition(
                name="move_meeting",
                description="",
                category="calendar",
                risk_level="medium",
                default_authority_level="draft_approve",
                reversible=True,
            ),
            ActionTypeDefinition(
                name="archive_newsletter",
                description="",
                category="email",
                risk_level="low",
                default_authority_level="full_auto",
                reversible=True,
            ),
        ]
    )
    resolver = AuthorityResolver(repository=repository, registry=registry)
    for action_type in registry.all():
        resolver.set_level("user-1", action_type.id, "disabled")

    resolver.enable_conservative_defaults("user-1")

    levels = {
        item.action_type.name: item.authority_level
        for item in resolver.list_settings("user-1")
    }
    assert levels == {
        "send_email_reply": "ask_first",
        "move_meeting": "draft_approve",
        "archive_newsletter": "full_auto",
    }


def test_list_settings_joins_defaults_and_overrides() -> None:
    _, registry, resolver = _seeded()
    resolver.set_level("user-1", registry.require("delegate_task").id, "disabled")

    summaries = {item.action_type.name: item for item in resolver.list_settings("user-1")}

    assert len(summaries) == len(BUILTIN_ACTION_TYPES)
    assert summaries["delegate_task"].is_user_override is True
    assert summaries["delegate_task"].authority_level == "disabled"
    assert summaries["delegate_task"].updated_by == "user"
    assert summaries["snooze_commitment"].is_user_override is False


def test_bulk_update_validates_every_name_before_writing() -> None:
    repository, _, resolver = _seeded()

    with pytest.raises(UnknownActionType):
        resolver.bulk_update(
            "user-1",
            [
                SettingUpdate(action_type_name="delegate_task", authority_level="disabled"),
                SettingUpdate(action_type_name="send_fax", authority_level="disabled"),
            ],
        )
    assert repository.list_settings(user_id="user-1") == ()

    applied = resolver.bulk_update(
        "user-1",
        [SettingUpdate(action_type_name="delegate_task", authority_level="disabled")],
    )
    assert [setting.authority_level for setting in applied] == ["disabled"]
