"""add action log execution claim"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa

from services.action.authority_engine.data.runtime import (
    authority_engine_postgres_schema,
)

# revision identifiers, used by Alembic.
revision = "20261024_0002"
down_revision = "20261017_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Add the column that marks an action log as claimed for execution."""
    op.add_column(
        "action_logs",
        sa.Column("execution_started_at", sa.DateTime(timezone=True), nullable=True),
        schema=authority_engine_postgres_schema(),
    )


def downgrade() -> None:
    """Drop the execution claim column."""
    op.drop_column(
        "action_logs",
        "execution_started_at",
        schema=authority_engine_postgres_schema(),
    )
