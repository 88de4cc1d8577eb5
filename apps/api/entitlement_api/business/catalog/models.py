from __future__ import annotations

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from entitlement_api.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CatalogProduct(Base):
    __tablename__ = "catalog_product"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("code", name="uq_catalog_product_code"),
        Index("ix_catalog_product_category", "category", "is_active"),
    )


class CatalogPlan(Base):
    __tablename__ = "catalog_plan"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    code: Mapped[str] = mapped_column(String(128), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("catalog_product.id", ondelete="RESTRICT"),
        nullable=False,
    )
    billing_period: Mapped[str] = mapped_column(String(32), nullable=False)
    trial_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    product: Mapped[CatalogProduct] = relationship("CatalogProduct")
    addons: Mapped[list[CatalogPlanAddOn]] = relationship(
        "CatalogPlanAddOn",
        back_populates="plan",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("code", name="uq_catalog_plan_code"),
        Index("ix_catalog_plan_product", "product_id"),
    )


class CatalogPlanAddOn(Base):
    """An add-on product that may be attached to subscriptions on the plan."""

    __tablename__ = "catalog_plan_addon"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    plan_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("catalog_plan.id", ondelete="CASCADE"),
        nullable=False,
    )
    addon_product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("catalog_product.id", ondelete="CASCADE"),
        nullable=False,
    )
    valid_from: Mapped[date | None] = mapped_column(Date(), nullable=True)
    valid_to: Mapped[date | None] = mapped_column(Date(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    plan: Mapped[CatalogPlan] = relationship("CatalogPlan", back_populates="addons")
    addon_product: Mapped[CatalogProduct] = relationship("CatalogProduct")

    __table_args__ = (
        UniqueConstraint("plan_id", "addon_product_id", name="uq_catalog_plan_addon_key"),
        Index("ix_catalog_plan_addon_lookup", "plan_id", "addon_product_id"),
    )
