"""Condition evaluation and authority severity ordering.

Checks run in a fixed order and stop at the first failure so the reported
reason is deterministic: time window, allowed domains, blocked domains, VIP
flag, confidence floor, custom rules.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import Any
from zoneinfo import ZoneInfo

from services.action.authority_engine.domain import (
    AuthorityConditions,
    AuthorityLevel,
    ConditionContext,
    ConditionResult,
    CustomRule,
    TimeWindow,
)

_SEVERITY: dict[AuthorityLevel, int] = {
    "full_auto": 0,
    "draft_approve": 1,
    "ask_first": 2,
    "disabled": 3,
}

_MET = ConditionResult(met=True)


def severity(level: AuthorityLevel) -> int:
    """Rank of ``level``; higher means less autonomy."""
    return _SEVERITY[level]


def tighten(level: AuthorityLevel, floor: AuthorityLevel) -> AuthorityLevel:
    """Return whichever of ``level`` and ``floor`` grants less autonomy."""
    return level if severity(level) >= severity(floor) else floor


def evaluate_conditions(
    conditions: AuthorityConditions | None, context: ConditionContext | None
) -> ConditionResult:
    """Evaluate ``conditions`` against ``context``.

    With no conditions or no context the result is always met. A constraint
    whose context field is absent is skipped, except ``vip_only`` which needs
    a positive ``is_vip``.
    """
    if conditions is None or context is None:
        return _MET

    if conditions.time_window is not None and context.current_time is not None:
        result = _check_time_window(conditions.time_window, context.current_time)
        if not result.met:
            return result

    domain = context.sender_domain.lower() if context.sender_domain else None
    if conditions.allowed_domains and domain is not None:
        if not any(allowed.lower() in domain for allowed in conditions.allowed_domains):
            return ConditionResult(met=False, reason="Sender domain not in allowed list")

    if conditions.blocked_domains and domain is not None:
        if any(blocked.lower() in domain for blocked in conditions.blocked_domains):
            return ConditionResult(met=False, reason="Sender domain is blocked")

    if conditions.vip_only and context.is_vip is not True:
        return ConditionResult(met=False, reason="VIP status required")

    if conditions.min_confidence is not None and context.importance_score is not None:
        threshold = round(conditions.min_confidence * 100, 6)
        if context.importance_score < threshold:
            return ConditionResult(
                met=False,
                reason=(
                    "Confidence score below threshold "
                    f"({context.importance_score:g} < {threshold:g})"
                ),
            )

    if conditions.custom_rules and context.custom_fields:
        for rule in conditions.custom_rules:
            if rule.field not in context.custom_fields:
                continue
            if not _rule_passes(rule, context.custom_fields[rule.field]):
                return ConditionResult(
                    met=False,
                    reason=f"Custom rule failed: {rule.field} {rule.operator} {rule.value}",
                )

    return _MET


def _check_time_window(window: TimeWindow, current_time: datetime) -> ConditionResult:
    """Compare wall-clock ``HH:MM`` against the window.

    With a window timezone the instant is converted there (naive means UTC).
    Without one, aware instants are converted to the process-local zone and
    naive instants are taken as local wall time.
    """
    local = current_time
    if window.timezone is not None:
        if local.tzinfo is None:
            local = local.replace(tzinfo=UTC)
        local = local.astimezone(ZoneInfo(window.timezone))
    elif local.tzinfo is not None:
        local = local.astimezone()
    clock = local.strftime("%H:%M")
    # Lexicographic on zero-padded HH:MM; windows do not wrap midnight.
    if clock < window.start or clock > window.end:
        return ConditionResult(
            met=False,
            reason=f"Outside allowed time window ({window.start} - {window.end})",
        )
    return _MET


def _rule_passes(rule: CustomRule, actual: Any) -> bool:
    if rule.operator == "equals":
        return actual == rule.value
    if rule.operator == "contains":
        return str(rule.value) in str(actual)
    if rule.operator == "matches":
        try:
            return re.search(str(rule.value), str(actual)) is not None
        except re.error:
            return False
    try:
        left = float(actual)
        right = float(rule.value)
    except (TypeError, ValueError):
        return False
    if rule.operator == "gt":
        return left > right
    return left < right
