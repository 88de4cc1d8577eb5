"""create catalog tables

Revision ID: 202610190001
Revises:
Create Date: 2026-10-19 09:00:00
"""

from collections.abc import Sequence

from alembic import op
import sqlalchemy as sa


revision: str = "202610190001"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "catalog_product",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_catalog_product_code"),
    )
    op.create_index("ix_catalog_product_category", "catalog_product", ["category", "is_active"])

    op.create_table(
        "catalog_plan",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("code", sa.String(length=128), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("product_id", sa.Uuid(), nullable=False),
        sa.Column("billing_period", sa.String(length=32), nullable=False),
        sa.Column("trial_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["product_id"], ["catalog_product.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("code", name="uq_catalog_plan_code"),
    )
    op.create_index("ix_catalog_plan_product", "catalog_plan", ["product_id"])

    op.create_table(
        "catalog_plan_addon",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("addon_product_id", sa.Uuid(), nullable=False),
        sa.Column("valid_from", sa.Date(), nullable=True),
        sa.Column("valid_to", sa.Date(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["plan_id"], ["catalog_plan.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["addon_product_id"], ["catalog_product.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plan_id", "addon_product_id", name="uq_catalog_plan_addon_key"),
    )
    op.create_index("ix_catalog_plan_addon_lookup", "catalog_plan_addon", ["plan_id", "addon_product_id"])


def downgrade() -> None:
    op.drop_index("ix_catalog_plan_addon_lookup", table_name="catalog_plan_addon")
    op.drop_table("catalog_plan_addon")
    op.drop_index("ix_catalog_plan_product", table_name="catalog_plan")
    op.drop_table("catalog_plan")
    op.drop_index("ix_catalog_product_category", table_name="catalog_product")
    op.drop_table("catalog_product")
