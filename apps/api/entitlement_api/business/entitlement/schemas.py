from __future__ import annotations

from datetime import date, datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from entitlement_api.business.subscription.schemas import SubscriptionTransitionRead


ActionPolicy = Literal["IMMEDIATE", "END_OF_TERM"]


class BlockingStateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    blocked_id: UUID
    type: str
    service: str
    state_name: str
    effective_date: datetime


class EntitlementCancelRequest(BaseModel):
    entitlement_policy: ActionPolicy = "END_OF_TERM"
    billing_policy: ActionPolicy = "END_OF_TERM"


class EntitlementChangePlanRequest(BaseModel):
    plan_id: UUID
    policy: ActionPolicy = "END_OF_TERM"
    requested_date: date | None = None


class EffectiveTransitionRequest(BaseModel):
    effective_at: datetime


class EntitlementActionRead(BaseModel):
    entitlement_id: UUID
    transition: SubscriptionTransitionRead
    entitlement_effective_at: datetime | None = None
    blocking_states: list[BlockingStateRead]


class NotificationRead(BaseModel):
    subscription_id: UUID
    transition_id: UUID
    kind: str
    effective_at: datetime
    blocking_states: list[BlockingStateRead]


class NotificationFailureRead(BaseModel):
    subscription_id: UUID
    transition_id: UUID
    kind: str
    effective_at: datetime
    error: str


class NotificationProcessRead(BaseModel):
    processed_at: datetime
    transition_count: int
    notifications: list[NotificationRead]
    failures: list[NotificationFailureRead] = Field(default_factory=list)
