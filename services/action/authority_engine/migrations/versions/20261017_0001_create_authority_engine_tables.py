"""create authority engine tables"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from services.action.authority_engine.data.runtime import (
    authority_engine_postgres_schema,
)

# revision identifiers, used by Alembic.
revision = "20261017_0001"
down_revision = None
branch_labels = None
depends_on = None


def _schema() -> str:
    """Resolve canonical Authority Engine-owned schema name."""
    return authority_engine_postgres_schema()


def upgrade() -> None:
    """Create Authority Engine schema objects."""
    schema = _schema()

    op.create_table(
        "action_types",
        sa.Column("id", sa.String(length=26), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("description", sa.String(length=512), nullable=False, server_default=""),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("risk_level", sa.String(length=16), nullable=False),
        sa.Column("default_authority_level", sa.String(length=32), nullable=False),
        sa.Column("reversible", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("name", name="uq_action_types_name"),
        schema=schema,
    )

    op.create_table(
        "authority_settings",
        sa.Column("id", sa.String(length=26), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("action_type_id", sa.String(length=26), nullable=False),
        sa.Column("authority_level", sa.String(length=32), nullable=False),
        sa.Column("conditions", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_by", sa.String(length=32), nullable=False, server_default="user"),
        sa.UniqueConstraint(
            "user_id", "action_type_id", name="uq_authority_settings_user_action_type"
        ),
        sa.ForeignKeyConstraint(
            ["action_type_id"],
            [f"{schema}.action_types.id"],
            ondelete="RESTRICT",
        ),
        schema=schema,
    )

    op.create_table(
        "action_logs",
        sa.Column("id", sa.String(length=26), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=128), nullable=False),
        sa.Column("action_type_id", sa.String(length=26), nullable=False),
        sa.Column("authority_level", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
        sa.Column("target_type", sa.String(length=32), nullable=False),
        sa.Column("target_id", sa.String(length=256), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("payload", postgresql.JSONB(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=True),
        sa.Column("user_feedback", sa.String(length=32), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["action_type_id"],
            [f"{schema}.action_types.id"],
            ondelete="RESTRICT",
        ),
        schema=schema,
    )
    op.create_index(
        "ix_action_logs_user_status_created",
        "action_logs",
        ["user_id", "status", "created_at"],
        schema=schema,
    )
    op.create_index(
        "ix_action_logs_user_target",
        "action_logs",
        ["user_id", "target_type", "target_id"],
        schema=schema,
    )


def downgrade() -> None:
    """Drop Authority Engine schema objects."""
    schema = _schema()
    op.drop_index("ix_action_logs_user_target", table_name="action_logs", schema=schema)
    op.drop_index(
        "ix_action_logs_user_status_created", table_name="action_logs", schema=schema
    )
    op.drop_table("action_logs", schema=schema)
    op.drop_table("authority_settings", schema=schema)
    op.drop_table("action_types", schema=schema)
