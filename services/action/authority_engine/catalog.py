"""Built-in action type catalog seeded at startup."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from services.action.authority_engine.domain import (
    ActionCategory,
    AuthorityLevel,
    RiskLevel,
)

CATALOG_VERSION = "1"


class ActionTypeDefinition(BaseModel):
    """Catalog entry used to create one ``ActionType`` row."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(min_length=1)
    description: str
    category: ActionCategory
    risk_level: RiskLevel
    default_authority_level: AuthorityLevel
    reversible: bool


BUILTIN_ACTION_TYPES: tuple[ActionTypeDefinition, ...] = (
    ActionTypeDefinition(
        name="decline_spam_meeting",
        description=(
            "Automatically decline obvious spam meeting invites from unknown senders"
        ),
        category="calendar",
        risk_level="low",
        default_authority_level="full_auto",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="decline_low_priority_meeting",
        description=(
            "Decline meeting invites that conflict with focus time or have low priority"
        ),
        category="calendar",
        risk_level="medium",
        default_authority_level="draft_approve",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="reschedule_meeting",
        description="Propose rescheduling a meeting to a better time",
        category="calendar",
        risk_level="medium",
        default_authority_level="draft_approve",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="protect_focus_time",
        description="Automatically protect focus time blocks by declining conflicts",
        category="calendar",
        risk_level="low",
        default_authority_level="full_auto",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="reply_routine_email",
        description=(
            "Draft and send replies to routine emails (scheduling, acknowledgments)"
        ),
        category="email",
        risk_level="medium",
        default_authority_level="draft_approve",
        reversible=False,
    ),
    ActionTypeDefinition(
        name="reply_decline_request",
        description="Draft a polite decline to a request",
        category="email",
        risk_level="high",
        default_authority_level="ask_first",
        reversible=False,
    ),
    ActionTypeDefinition(
        name="follow_up_nudge",
        description="Send a follow-up email to nudge someone who hasn't responded",
        category="email",
        risk_level="low",
        default_authority_level="draft_approve",
        reversible=False,
    ),
    ActionTypeDefinition(
        name="snooze_commitment",
        description="Snooze a commitment reminder to a later time",
        category="task",
        risk_level="low",
        default_authority_level="full_auto",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="complete_commitment",
        description="Mark a commitment as completed",
        category="task",
        risk_level="medium",
        default_authority_level="ask_first",
        reversible=True,
    ),
    ActionTypeDefinition(
        name="delegate_task",
        description="Delegate a task to someone else",
        category="task",
        risk_level="high",
        default_authority_level="ask_first",
        reversible=False,
    ),
)
