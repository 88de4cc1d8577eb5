"""create subscription bundle, subscription and transition tables

Revision ID: 202610190002
Revises: 202610190001
Create Date: 2026-10-19 09:10:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190002"
down_revision: str | None = "202610190001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "subscription_bundle",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("external_key", sa.String(length=255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_bundle_account", "subscription_bundle", ["account_id", "external_key"])

    op.create_table(
        "subscription",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("bundle_id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("state", sa.String(length=32), nullable=False, server_default="ACTIVE"),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("charged_through_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["bundle_id"], ["subscription_bundle.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["plan_id"], ["catalog_plan.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_bundle_category", "subscription", ["bundle_id", "category"])

    op.create_table(
        "subscription_transition",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("subscription_id", sa.Uuid(), nullable=False),
        sa.Column("kind", sa.String(length=32), nullable=False),
        sa.Column("effective_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("previous_plan_id", sa.Uuid(), nullable=True),
        sa.Column("next_plan_id", sa.Uuid(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["subscription_id"], ["subscription.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_subscription_transition_timeline", "subscription_transition", ["subscription_id", "effective_at"])
    op.create_index("ix_subscription_transition_unapplied", "subscription_transition", ["applied_at", "effective_at"])


def downgrade() -> None:
    op.drop_index("ix_subscription_transition_unapplied", table_name="subscription_transition")
    op.drop_index("ix_subscription_transition_timeline", table_name="subscription_transition")
    op.drop_table("subscription_transition")
    op.drop_index("ix_subscription_bundle_category", table_name="subscription")
    op.drop_table("subscription")
    op.drop_index("ix_subscription_bundle_account", table_name="subscription_bundle")
    op.drop_table("subscription_bundle")
