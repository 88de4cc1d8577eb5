from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


ProductCategory = Literal["BASE", "ADD_ON"]
BillingPeriod = Literal["MONTHLY", "ANNUAL"]


class CatalogProductCreate(BaseModel):
    code: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    category: ProductCategory
    is_active: bool = True


class CatalogProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    category: ProductCategory | str
    is_active: bool
    created_at: datetime


class CatalogPlanCreate(BaseModel):
    code: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    product_id: UUID
    billing_period: BillingPeriod
    trial_days: int = Field(default=0, ge=0)
    is_active: bool = True


class CatalogPlanAddOnCreate(BaseModel):
    addon_product_id: UUID
    valid_from: date | None = None
    valid_to: date | None = None

    @model_validator(mode="after")
    def _check_window(self) -> CatalogPlanAddOnCreate:
        if self.valid_from and self.valid_to and self.valid_to < self.valid_from:
            raise ValueError("valid_to must be on or after valid_from")
        return self


class CatalogPlanAddOnRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    plan_id: UUID
    addon_product_id: UUID
    valid_from: date | None
    valid_to: date | None
    created_at: datetime


class CatalogPlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    code: str
    name: str
    product_id: UUID
    billing_period: BillingPeriod | str
    trial_days: int
    is_active: bool
    created_at: datetime
    addons: list[CatalogPlanAddOnRead] = Field(default_factory=list)


class AddOnInclusionRead(BaseModel):
    plan_id: UUID
    addon_product_id: UUID
    as_of: date
    included: bool
