from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from entitlement_api.business.catalog.errors import CatalogResolutionError
from entitlement_api.business.catalog.models import CatalogPlan, CatalogPlanAddOn, CatalogProduct
from entitlement_api.business.catalog.repository import (
    CatalogPlanAddOnRepository,
    CatalogPlanRepository,
    CatalogProductRepository,
)
from entitlement_api.business.catalog.schemas import (
    CatalogPlanAddOnCreate,
    CatalogPlanAddOnRead,
    CatalogPlanCreate,
    CatalogPlanRead,
    CatalogProductCreate,
    CatalogProductRead,
)


@dataclass(slots=True)
class CatalogService:
    product_repository: CatalogProductRepository = CatalogProductRepository()
    plan_repository: CatalogPlanRepository = CatalogPlanRepository()
    plan_addon_repository: CatalogPlanAddOnRepository = CatalogPlanAddOnRepository()

    def create_product(self, session: Session, dto: CatalogProductCreate) -> CatalogProductRead:
        product = CatalogProduct(**dto.model_dump(mode="python"))
        session.add(product)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="catalog product already exists")
        session.refresh(product)
        return CatalogProductRead.model_validate(product)

    def list_products(self, session: Session, *, category: str | None = None) -> list[CatalogProductRead]:
        rows = session.scalars(self.product_repository.listing(category)).all()
        return [CatalogProductRead.model_validate(row) for row in rows]

    def create_plan(self, session: Session, dto: CatalogPlanCreate) -> CatalogPlanRead:
        product = session.scalar(self.product_repository.by_id(dto.product_id))
        if product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="product not found")

        plan = CatalogPlan(**dto.model_dump(mode="python"))
        session.add(plan)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="catalog plan already exists")
        return self.get_plan(session, plan.id)

    def get_plan(self, session: Session, plan_id: uuid.UUID) -> CatalogPlanRead:
        plan = session.scalar(self.plan_repository.by_id(plan_id).options(selectinload(CatalogPlan.addons)))
        if plan is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="plan not found")
        return CatalogPlanRead.model_validate(plan)

    def list_plans(self, session: Session, *, product_id: uuid.UUID | None = None) -> list[CatalogPlanRead]:
        rows = session.scalars(self.plan_repository.listing(product_id).options(selectinload(CatalogPlan.addons))).all()
        return [CatalogPlanRead.model_validate(row) for row in rows]

    def add_plan_addon(self, session: Session, plan_id: uuid.UUID, dto: CatalogPlanAddOnCreate) -> CatalogPlanAddOnRead:
        plan = session.scalar(self.plan_repository.by_id(plan_id).options(selectinload(CatalogPlan.product)))
        if plan is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="plan not found")
        if plan.product.category != "BASE":
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="add-ons can only be attached to BASE plans")

        addon_product = session.scalar(self.product_repository.by_id(dto.addon_product_id))
        if addon_product is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="add-on product not found")
        if addon_product.category != "ADD_ON":
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="product is not an ADD_ON product")

        link = CatalogPlanAddOn(plan_id=plan.id, **dto.model_dump(mode="python"))
        session.add(link)
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="add-on already attached to plan")
        session.refresh(link)
        return CatalogPlanAddOnRead.model_validate(link)

    def list_plan_addons(self, session: Session, plan_id: uuid.UUID) -> list[CatalogPlanAddOnRead]:
        rows = session.scalars(self.plan_addon_repository.for_plan(plan_id)).all()
        return [CatalogPlanAddOnRead.model_validate(row) for row in rows]

    def resolve_plan(self, session: Session, plan_id: uuid.UUID) -> CatalogPlan:
        plan = session.scalar(self.plan_repository.by_id(plan_id))
        if plan is None:
            raise CatalogResolutionError("plan", plan_id)
        return plan

    def is_addon_included(
        self,
        session: Session,
        plan_id: uuid.UUID,
        addon_product_id: uuid.UUID,
        as_of: date,
    ) -> bool:
        self.resolve_plan(session, plan_id)
        if session.scalar(self.product_repository.by_id(addon_product_id)) is None:
            raise CatalogResolutionError("product", addon_product_id)

        link = session.scalar(self.plan_addon_repository.for_pair(plan_id, addon_product_id))
        if link is None:
            return False
        if link.valid_from and as_of < link.valid_from:
            return False
        if link.valid_to and as_of > link.valid_to:
            return False
        return True


catalog_service = CatalogService()
