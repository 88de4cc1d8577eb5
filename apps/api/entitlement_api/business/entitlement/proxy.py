from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from entitlement_api.business.entitlement.dao import BlockingStateDao, blocking_state_dao
from entitlement_api.business.entitlement.domain import BLOCKING_TYPE_SUBSCRIPTION, BlockingState
from entitlement_api.business.entitlement.engine import BlockingStateEngine, blocking_state_engine
from entitlement_api.business.subscription.service import SubscriptionService, subscription_service
from entitlement_api.core.dates import ensure_utc, utcnow


@dataclass(slots=True)
class ProxyBlockingStateDao:
    """Read view that adds not-yet-recorded add-on states to the stored ones.

    Projected states come from the base's pending transition and are never
    written back.
    """

    dao: BlockingStateDao = field(default_factory=lambda: blocking_state_dao)
    engine: BlockingStateEngine = field(default_factory=lambda: blocking_state_engine)
    timeline: SubscriptionService = field(default_factory=lambda: subscription_service)

    def get_blocking_all(
        self,
        session: Session,
        blocked_id: uuid.UUID,
        state_type: str = BLOCKING_TYPE_SUBSCRIPTION,
        *,
        now: datetime | None = None,
    ) -> list[BlockingState]:
        now = ensure_utc(now) if now is not None else utcnow()
        states = self.dao.get_all(session, blocked_id, state_type)
        if state_type != BLOCKING_TYPE_SUBSCRIPTION:
            return states

        entitlement = self.timeline.get_entitlement(session, blocked_id)
        if entitlement.category == "BASE":
            return states
        base = self.timeline.get_base_subscription(session, entitlement.bundle_id)
        if base is None:
            return states

        recorded = {state.state_name for state in states}
        for projected in self.engine.compute_future_blocking_states(session, base.id, now=now):
            if projected.blocked_id == blocked_id and projected.state_name not in recorded:
                states.append(projected)
        return states


proxy_blocking_state_dao = ProxyBlockingStateDao()
