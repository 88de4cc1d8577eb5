from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from entitlement_api.business.entitlement.dao import BlockingStateDao, blocking_state_dao
from entitlement_api.business.entitlement.domain import BlockingState
from entitlement_api.business.entitlement.engine import BlockingStateEngine, blocking_state_engine
from entitlement_api.business.entitlement.schemas import BlockingStateRead, EntitlementActionRead
from entitlement_api.business.subscription.schemas import SubscriptionTransitionRead
from entitlement_api.business.subscription.service import SubscriptionService, subscription_service
from entitlement_api.context import bound_entitlement
from entitlement_api.core.dates import ensure_utc, utcnow


logger = logging.getLogger("entitlement_api.entitlement.service")


@dataclass(slots=True)
class EntitlementService:
    """Entitlement lifecycle entry points.

    Policies are resolved here; the blocking-state engine only ever receives
    the resulting effective times.
    """

    engine: BlockingStateEngine = field(default_factory=lambda: blocking_state_engine)
    dao: BlockingStateDao = field(default_factory=lambda: blocking_state_dao)
    timeline: SubscriptionService = field(default_factory=lambda: subscription_service)

    def cancel_entitlement(
        self,
        session: Session,
        entitlement_id: uuid.UUID,
        *,
        entitlement_policy: str = "END_OF_TERM",
        billing_policy: str = "END_OF_TERM",
        now: datetime | None = None,
    ) -> EntitlementActionRead:
        now = ensure_utc(now) if now is not None else utcnow()
        subscription = self.timeline.get_entitlement(session, entitlement_id)
        blocked_at = self.timeline.resolve_policy_time(subscription, entitlement_policy, now)
        if blocked_at > self.timeline.resolve_policy_time(subscription, billing_policy, now):
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="entitlement cannot end after its billing",
            )
        category = subscription.category

        transition = self.timeline.cancel(session, subscription.id, policy=billing_policy, now=now)

        self.dao.append_if_absent(session, BlockingState.cancelled(entitlement_id, blocked_at))
        session.commit()
        with bound_entitlement(entitlement_id):
            logger.info("entitlement.cancelled", extra={"effective_at": blocked_at.isoformat(), "trigger": "CANCEL"})

        derived: list[BlockingState] = []
        if category == "BASE" and blocked_at <= now:
            derived = self.engine.compute_blocking_states_for_effective_transition(session, entitlement_id, blocked_at)

        return EntitlementActionRead(
            entitlement_id=entitlement_id,
            transition=SubscriptionTransitionRead.model_validate(transition),
            entitlement_effective_at=blocked_at,
            blocking_states=[BlockingStateRead.model_validate(state) for state in derived],
        )

    def change_plan(
        self,
        session: Session,
        entitlement_id: uuid.UUID,
        plan_id: uuid.UUID,
        *,
        policy: str = "END_OF_TERM",
        requested_date: date | None = None,
        now: datetime | None = None,
    ) -> EntitlementActionRead:
        now = ensure_utc(now) if now is not None else utcnow()
        subscription = self.timeline.get_entitlement(session, entitlement_id)
        category = subscription.category

        transition = self.timeline.change_plan(
            session,
            subscription.id,
            plan_id,
            policy=policy,
            requested_date=requested_date,
            now=now,
        )
        effective_at = ensure_utc(transition.effective_at)

        derived: list[BlockingState] = []
        if category == "BASE" and effective_at <= now:
            derived = self.engine.compute_blocking_states_for_effective_transition(session, entitlement_id, effective_at)

        return EntitlementActionRead(
            entitlement_id=entitlement_id,
            transition=SubscriptionTransitionRead.model_validate(transition),
            blocking_states=[BlockingStateRead.model_validate(state) for state in derived],
        )


entitlement_service = EntitlementService()
