"""Table models for action types, authority settings and action logs."""

from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

metadata = MetaData()

_JSON = JSON(none_as_null=True).with_variant(JSONB(none_as_null=True), "postgresql")

action_types = Table(
    "action_types",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("name", String(128), nullable=False, unique=True),
    Column("description", String(512), nullable=False, server_default=""),
    Column("category", String(32), nullable=False),
    Column("risk_level", String(16), nullable=False),
    Column("default_authority_level", String(32), nullable=False),
    Column("reversible", Boolean, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

authority_settings = Table(
    "authority_settings",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("user_id", String(128), nullable=False),
    Column(
        "action_type_id",
        String(26),
        ForeignKey(action_types.c.id, ondelete="RESTRICT"),
        nullable=False,
    ),
    Column("authority_level", String(32), nullable=False),
    Column("conditions", _JSON, nullable=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("updated_by", String(32), nullable=False, server_default="user"),
    UniqueConstraint(
        "user_id", "action_type_id", name="uq_authority_settings_user_action_type"
    ),
)

action_logs = Table(
    "action_logs",
    metadata,
    Column("id", String(26), primary_key=True),
    Column("user_id", String(128), nullable=False),
    Column(
        "action_type_id",
        String(26),
        ForeignKey(action_types.c.id, ondelete="RESTRICT"),
        nullable=False,
    ),
    Column("authority_level", String(32), nullable=False),
    Column("status", String(32), nullable=False),
    Column("target_type", String(32), nullable=False),
    Column("target_id", String(256), nullable=False),
    Column("description", Text, nullable=False),
    Column("payload", _JSON, nullable=False),
    Column("confidence_score", Float, nullable=True),
    Column("user_feedback", String(32), nullable=True),
    Column("metadata", _JSON, nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("approved_at", DateTime(timezone=True), nullable=True),
    Column("rejected_at", DateTime(timezone=True), nullable=True),
    Column("executed_at", DateTime(timezone=True), nullable=True),
    Column("execution_started_at", DateTime(timezone=True), nullable=True),
    Index("ix_action_logs_user_status_created", "user_id", "status", "created_at"),
    Index("ix_action_logs_user_target", "user_id", "target_type", "target_id"),
)
