"""Value types of the add-on blocking-state derivation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

from entitlement_api.core.dates import ensure_utc


BlockingStateType = Literal["SUBSCRIPTION", "SUBSCRIPTION_BUNDLE", "ACCOUNT"]
TriggerKind = Literal["CANCEL", "CHANGE"]

BLOCKING_TYPE_SUBSCRIPTION: BlockingStateType = "SUBSCRIPTION"
ENTITLEMENT_SERVICE_NAME = "entitlement-service"
ENT_STATE_CANCELLED = "ENT_CANCELLED"


@dataclass(frozen=True, slots=True)
class BlockingState:
    """A dated state applied to a blockable entity.

    Instances are immutable; the store never updates a recorded state.
    """

    blocked_id: uuid.UUID
    type: str
    service: str
    state_name: str
    effective_date: datetime

    def __post_init__(self) -> None:
        object.__setattr__(self, "effective_date", ensure_utc(self.effective_date))

    @classmethod
    def cancelled(cls, blocked_id: uuid.UUID, effective_date: datetime) -> BlockingState:
        return cls(
            blocked_id=blocked_id,
            type=BLOCKING_TYPE_SUBSCRIPTION,
            service=ENTITLEMENT_SERVICE_NAME,
            state_name=ENT_STATE_CANCELLED,
            effective_date=effective_date,
        )

    @property
    def is_cancellation(self) -> bool:
        return self.state_name == ENT_STATE_CANCELLED


@dataclass(frozen=True, slots=True)
class DerivationTrigger:
    """The base transition that add-on consequences are derived from."""

    kind: TriggerKind
    effective_at: datetime
    next_plan_id: uuid.UUID | None = None
