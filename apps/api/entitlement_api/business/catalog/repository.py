from __future__ import annotations

import uuid

from sqlalchemy import Select, select

from entitlement_api.business.catalog.models import CatalogPlan, CatalogPlanAddOn, CatalogProduct


class CatalogProductRepository:
    def by_id(self, product_id: uuid.UUID) -> Select[tuple[CatalogProduct]]:
        return select(CatalogProduct).where(CatalogProduct.id == product_id)

    def listing(self, category: str | None = None) -> Select[tuple[CatalogProduct]]:
        stmt = select(CatalogProduct)
        if category is not None:
            stmt = stmt.where(CatalogProduct.category == category)
        return stmt.order_by(CatalogProduct.code.asc())


class CatalogPlanRepository:
    def by_id(self, plan_id: uuid.UUID) -> Select[tuple[CatalogPlan]]:
        return select(CatalogPlan).where(CatalogPlan.id == plan_id)

    def listing(self, product_id: uuid.UUID | None = None) -> Select[tuple[CatalogPlan]]:
        stmt = select(CatalogPlan)
        if product_id is not None:
            stmt = stmt.where(CatalogPlan.product_id == product_id)
        return stmt.order_by(CatalogPlan.code.asc())


class CatalogPlanAddOnRepository:
    def for_plan(self, plan_id: uuid.UUID) -> Select[tuple[CatalogPlanAddOn]]:
        return (
            select(CatalogPlanAddOn)
            .where(CatalogPlanAddOn.plan_id == plan_id)
            .order_by(CatalogPlanAddOn.created_at.asc())
        )

    def for_pair(self, plan_id: uuid.UUID, addon_product_id: uuid.UUID) -> Select[tuple[CatalogPlanAddOn]]:
        return select(CatalogPlanAddOn).where(
            CatalogPlanAddOn.plan_id == plan_id,
            CatalogPlanAddOn.addon_product_id == addon_product_id,
        )
