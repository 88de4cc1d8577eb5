"""create blocking state table

Revision ID: 202610190003
Revises: 202610190002
Create Date: 2026-10-19 09:20:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190003"
down_revision: str | None = "202610190002"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "blocking_state",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("blocked_id", sa.Uuid(), nullable=False),
        sa.Column("type", sa.String(length=32), nullable=False),
        sa.Column("service", sa.String(length=64), nullable=False),
        sa.Column("state_name", sa.String(length=64), nullable=False),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("blocked_id", "type", "state_name", name="uq_blocking_state_blocked_type_state"),
    )
    op.create_index("ix_blocking_state_blocked", "blocking_state", ["blocked_id", "type", "created_at"])


def downgrade() -> None:
    op.drop_index("ix_blocking_state_blocked", table_name="blocking_state")
    op.drop_table("blocking_state")
