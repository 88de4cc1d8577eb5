"""Derivation of add-on blocking states from base subscription transitions.

Two entry points share one candidate derivation:

* ``compute_future_blocking_states`` projects the consequences of the base's
  next pending cancel/change. It reads the store but never writes to it.
* ``compute_blocking_states_for_effective_transition`` evaluates the transition
  that fired at a caller-supplied time and records the resulting states once.
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from entitlement_api.business.catalog.service import CatalogService, catalog_service
from entitlement_api.business.entitlement.dao import BlockingStateDao, blocking_state_dao
from entitlement_api.business.entitlement.domain import BLOCKING_TYPE_SUBSCRIPTION, BlockingState, DerivationTrigger
from entitlement_api.business.subscription.errors import MultiplePendingTransitionsError
from entitlement_api.business.subscription.models import Subscription, SubscriptionTransition
from entitlement_api.business.subscription.service import PENDING_ACTION_KINDS, SubscriptionService, subscription_service
from entitlement_api.core.dates import ensure_utc, is_same_day_and_minute, utcnow
from entitlement_api.metrics import observe_derivation
from entitlement_api.otel import entitlement_span


logger = logging.getLogger("entitlement_api.entitlement.engine")

MODE_FUTURE = "future"
MODE_EFFECTIVE = "effective"


@dataclass(slots=True)
class BlockingStateEngine:
    dao: BlockingStateDao = field(default_factory=lambda: blocking_state_dao)
    timeline: SubscriptionService = field(default_factory=lambda: subscription_service)
    catalog: CatalogService = field(default_factory=lambda: catalog_service)

    def compute_future_blocking_states(
        self,
        session: Session,
        base_entitlement_id: uuid.UUID,
        *,
        now: datetime | None = None,
    ) -> list[BlockingState]:
        now = ensure_utc(now) if now is not None else utcnow()
        with entitlement_span("entitlement.blocking_states.future", base_entitlement_id) as span:
            started = time.perf_counter()
            try:
                base = self.timeline.get_entitlement(session, base_entitlement_id)
                trigger = self._resolve_pending_trigger(session, base, now) if base.category == "BASE" else None
                candidates = self._derive(session, base, trigger, blocked_before=None) if trigger is not None else []
            except Exception:
                observe_derivation(MODE_FUTURE, "error", time.perf_counter() - started)
                raise

            span.set_attribute("candidate_count", len(candidates))
            observe_derivation(MODE_FUTURE, "derived" if candidates else "empty", time.perf_counter() - started)
            logger.info(
                "blocking_state.derived",
                extra={
                    "mode": MODE_FUTURE,
                    "trigger": trigger.kind if trigger is not None else None,
                    "candidate_count": len(candidates),
                },
            )
            return candidates

    def compute_blocking_states_for_effective_transition(
        self,
        session: Session,
        base_entitlement_id: uuid.UUID,
        effective_at: datetime,
    ) -> list[BlockingState]:
        """Derive and record the add-on states caused by the base transition at ``effective_at``.

        Returns every state that must exist for the transition, including those
        recorded by an earlier call. All appends are committed together; any
        failure rolls the session back before propagating.
        """
        effective_at = ensure_utc(effective_at)
        with entitlement_span(
            "entitlement.blocking_states.effective",
            base_entitlement_id,
            effective_at=effective_at.isoformat(),
        ) as span:
            started = time.perf_counter()
            try:
                base = self.timeline.get_entitlement(session, base_entitlement_id)
                trigger = self._resolve_fired_trigger(session, base, effective_at) if base.category == "BASE" else None
                candidates = self._derive(session, base, trigger, blocked_before=effective_at) if trigger is not None else []
                appended = sum(1 for state in candidates if self.dao.append_if_absent(session, state))
                session.commit()
            except Exception:
                session.rollback()
                observe_derivation(MODE_EFFECTIVE, "error", time.perf_counter() - started)
                raise

            span.set_attribute("candidate_count", len(candidates))
            span.set_attribute("appended_count", appended)
            observe_derivation(MODE_EFFECTIVE, "derived" if candidates else "empty", time.perf_counter() - started)
            logger.info(
                "blocking_state.derived",
                extra={
                    "mode": MODE_EFFECTIVE,
                    "effective_at": effective_at.isoformat(),
                    "trigger": trigger.kind if trigger is not None else None,
                    "candidate_count": len(candidates),
                    "appended_count": appended,
                },
            )
            return candidates

    def _resolve_pending_trigger(self, session: Session, base: Subscription, now: datetime) -> DerivationTrigger | None:
        # A future entitlement cancellation precedes any billing transition.
        own = self.dao.get_cancellation(session, base.id, BLOCKING_TYPE_SUBSCRIPTION)
        if own is not None and own.effective_date > now:
            return DerivationTrigger(kind="CANCEL", effective_at=own.effective_date)

        pending = self.timeline.get_pending_transitions(session, base.id, now, PENDING_ACTION_KINDS)
        if not pending:
            return None
        if len(pending) > 1:
            raise MultiplePendingTransitionsError(base.id, len(pending))
        return self._trigger_from(pending[0], ensure_utc(pending[0].effective_at))

    def _resolve_fired_trigger(
        self,
        session: Session,
        base: Subscription,
        effective_at: datetime,
    ) -> DerivationTrigger | None:
        own = self.dao.get_cancellation(session, base.id, BLOCKING_TYPE_SUBSCRIPTION)
        if own is not None and own.effective_date <= effective_at:
            return DerivationTrigger(kind="CANCEL", effective_at=effective_at)

        # Notifications fire with scheduling jitter, so match at minute granularity.
        fired = [
            row
            for row in self.timeline.list_transitions(session, base.id, PENDING_ACTION_KINDS)
            if is_same_day_and_minute(row.effective_at, effective_at)
        ]
        if not fired:
            return None
        if len(fired) > 1:
            raise MultiplePendingTransitionsError(base.id, len(fired))
        return self._trigger_from(fired[0], effective_at)

    @staticmethod
    def _trigger_from(transition: SubscriptionTransition, effective_at: datetime) -> DerivationTrigger:
        return DerivationTrigger(kind=transition.kind, effective_at=effective_at, next_plan_id=transition.next_plan_id)

    def _derive(
        self,
        session: Session,
        base: Subscription,
        trigger: DerivationTrigger,
        *,
        blocked_before: datetime | None,
    ) -> list[BlockingState]:
        """Candidate states for the bundle's add-ons.

        ``blocked_before`` bounds which recorded cancellations exclude an add-on:
        None means any recorded cancellation does.
        """
        candidates: list[BlockingState] = []
        for addon in self.timeline.list_associated_addons(session, base.bundle_id):
            if self._cancelled_before(session, addon, trigger.effective_at):
                continue

            recorded = self.dao.get_cancellation(session, addon.id, BLOCKING_TYPE_SUBSCRIPTION)
            if recorded is not None and (blocked_before is None or recorded.effective_date < blocked_before):
                continue

            if trigger.kind == "CHANGE":
                if trigger.next_plan_id is None:
                    continue
                addon_plan = self.catalog.resolve_plan(session, addon.plan_id)
                if self.catalog.is_addon_included(
                    session,
                    trigger.next_plan_id,
                    addon_plan.product_id,
                    trigger.effective_at.date(),
                ):
                    continue

            candidates.append(BlockingState.cancelled(addon.id, trigger.effective_at))
        return candidates

    def _cancelled_before(self, session: Session, addon: Subscription, at: datetime) -> bool:
        return any(
            ensure_utc(row.effective_at) < at
            for row in self.timeline.list_transitions(session, addon.id, ("CANCEL",))
        )


blocking_state_engine = BlockingStateEngine()
