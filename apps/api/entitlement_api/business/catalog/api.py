from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from entitlement_api.business.catalog.errors import CatalogResolutionError
from entitlement_api.business.catalog.schemas import (
    AddOnInclusionRead,
    CatalogPlanAddOnCreate,
    CatalogPlanAddOnRead,
    CatalogPlanCreate,
    CatalogPlanRead,
    CatalogProductCreate,
    CatalogProductRead,
)
from entitlement_api.business.catalog.service import catalog_service
from entitlement_api.core.auth import AuthUser, get_current_user, require_role
from entitlement_api.core.database import get_db


router = APIRouter(prefix="/catalog", tags=["catalog"])


@router.post("/products", response_model=CatalogProductRead, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: CatalogProductCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("catalog.write")),
) -> CatalogProductRead:
    return catalog_service.create_product(db, payload)


@router.get("/products", response_model=list[CatalogProductRead])
def list_products(
    category: str | None = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[CatalogProductRead]:
    return catalog_service.list_products(db, category=category)


@router.post("/plans", response_model=CatalogPlanRead, status_code=status.HTTP_201_CREATED)
def create_plan(
    payload: CatalogPlanCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("catalog.write")),
) -> CatalogPlanRead:
    return catalog_service.create_plan(db, payload)


@router.get("/plans", response_model=list[CatalogPlanRead])
def list_plans(
    product_id: uuid.UUID | None = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[CatalogPlanRead]:
    return catalog_service.list_plans(db, product_id=product_id)


@router.get("/plans/{plan_id}", response_model=CatalogPlanRead)
def get_plan(
    plan_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> CatalogPlanRead:
    return catalog_service.get_plan(db, plan_id)


@router.post("/plans/{plan_id}/addons", response_model=CatalogPlanAddOnRead, status_code=status.HTTP_201_CREATED)
def add_plan_addon(
    plan_id: uuid.UUID,
    payload: CatalogPlanAddOnCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("catalog.write")),
) -> CatalogPlanAddOnRead:
    return catalog_service.add_plan_addon(db, plan_id, payload)


@router.get("/plans/{plan_id}/addons", response_model=list[CatalogPlanAddOnRead])
def list_plan_addons(
    plan_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[CatalogPlanAddOnRead]:
    return catalog_service.list_plan_addons(db, plan_id)


@router.get("/plans/{plan_id}/addons/{addon_product_id}/included", response_model=AddOnInclusionRead)
def addon_included(
    plan_id: uuid.UUID,
    addon_product_id: uuid.UUID,
    as_of: date | None = Query(default=None),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> AddOnInclusionRead:
    target_date = as_of or date.today()
    try:
        included = catalog_service.is_addon_included(db, plan_id, addon_product_id, target_date)
    except CatalogResolutionError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return AddOnInclusionRead(plan_id=plan_id, addon_product_id=addon_product_id, as_of=target_date, included=included)
