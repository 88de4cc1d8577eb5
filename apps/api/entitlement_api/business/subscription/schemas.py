from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


SubscriptionCategory = Literal["BASE", "ADD_ON"]
SubscriptionState = Literal["ACTIVE", "CANCELLED"]
TransitionKind = Literal["CREATE", "PHASE", "CHANGE", "CANCEL"]
BillingActionPolicy = Literal["IMMEDIATE", "END_OF_TERM"]


class BaseSubscriptionCreate(BaseModel):
    account_id: UUID
    external_key: str = Field(min_length=1, max_length=255)
    plan_id: UUID
    start_at: datetime | None = None


class AddOnSubscriptionCreate(BaseModel):
    plan_id: UUID
    start_at: datetime | None = None


class ChargedThroughUpdate(BaseModel):
    charged_through_at: datetime


class SubscriptionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bundle_id: UUID
    plan_id: UUID
    category: SubscriptionCategory | str
    state: SubscriptionState | str
    start_at: datetime
    charged_through_at: datetime | None
    created_at: datetime
    updated_at: datetime


class SubscriptionTransitionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    subscription_id: UUID
    kind: TransitionKind | str
    effective_at: datetime
    previous_plan_id: UUID | None
    next_plan_id: UUID | None
    applied_at: datetime | None
    created_at: datetime


class ChangePlanTarget(BaseModel):
    plan_id: UUID
    policy: BillingActionPolicy = "END_OF_TERM"
    requested_date: date | None = None
