from __future__ import annotations

import logging
from datetime import datetime

from opentelemetry import trace
from sqlalchemy.orm import Session

from entitlement_api import events
from entitlement_api.business.entitlement.engine import BlockingStateEngine, blocking_state_engine
from entitlement_api.business.entitlement.schemas import (
    BlockingStateRead,
    NotificationFailureRead,
    NotificationProcessRead,
    NotificationRead,
)
from entitlement_api.business.subscription.models import SubscriptionTransition
from entitlement_api.business.subscription.service import PENDING_ACTION_KINDS, SubscriptionService, subscription_service
from entitlement_api.core.dates import ensure_utc, utcnow


logger = logging.getLogger("entitlement_api.entitlement.notifications")
tracer = trace.get_tracer("entitlement_api.entitlement")


def _triggers_derivation(transition: SubscriptionTransition) -> bool:
    return transition.subscription.category == "BASE" and transition.kind in PENDING_ACTION_KINDS


def process_due_notifications(
    session: Session,
    *,
    now: datetime | None = None,
    timeline: SubscriptionService = subscription_service,
    engine: BlockingStateEngine = blocking_state_engine,
) -> NotificationProcessRead:
    """Apply due subscription transitions and record the add-on states they cause.

    A fired base cancel/change is marked applied in the same transaction that
    records its add-on states, using the transition's own effective time. When
    the derivation fails the transition stays unapplied, so the next run picks
    it up again; the rest of the batch is still processed.
    """
    now = ensure_utc(now) if now is not None else utcnow()
    with tracer.start_as_current_span("entitlement.notifications.process") as span:
        span.set_attribute("processed_at", now.isoformat())
        due = timeline.due_transitions(session, now=now)

        applied_count = 0
        notifications: list[NotificationRead] = []
        failures: list[NotificationFailureRead] = []
        for transition in due:
            if not _triggers_derivation(transition):
                timeline.mark_applied(transition, now)
                session.commit()
                timeline.report_applied(transition)
                applied_count += 1
                continue

            subscription_id = transition.subscription_id
            transition_id = transition.id
            kind = transition.kind
            bundle_id = transition.subscription.bundle_id
            effective_at = ensure_utc(transition.effective_at)

            timeline.mark_applied(transition, now)
            try:
                # commits the applied transition together with the recorded states
                states = engine.compute_blocking_states_for_effective_transition(session, subscription_id, effective_at)
            except Exception as exc:
                session.rollback()
                logger.exception(
                    "entitlement.notification_failed",
                    extra={
                        "subscription_id": str(subscription_id),
                        "effective_at": effective_at.isoformat(),
                        "trigger": kind,
                        "error": str(exc),
                    },
                )
                failures.append(
                    NotificationFailureRead(
                        subscription_id=subscription_id,
                        transition_id=transition_id,
                        kind=kind,
                        effective_at=effective_at,
                        error=str(exc),
                    )
                )
                continue

            applied_count += 1
            timeline.report_applied(transition)
            notifications.append(
                NotificationRead(
                    subscription_id=subscription_id,
                    transition_id=transition_id,
                    kind=kind,
                    effective_at=effective_at,
                    blocking_states=[BlockingStateRead.model_validate(state) for state in states],
                )
            )
            events.publish(
                {
                    "event_type": "entitlement.addons_blocked",
                    "subscription_id": str(subscription_id),
                    "bundle_id": str(bundle_id),
                    "kind": kind,
                    "effective_at": effective_at.isoformat(),
                    "blocked_ids": [str(state.blocked_id) for state in states],
                }
            )

        span.set_attribute("transition_count", applied_count)
        span.set_attribute("failed_count", len(failures))
        logger.info(
            "entitlement.notifications_processed",
            extra={
                "transition_count": applied_count,
                "candidate_count": sum(len(item.blocking_states) for item in notifications),
                "failed_count": len(failures),
            },
        )
        return NotificationProcessRead(
            processed_at=now,
            transition_count=applied_count,
            notifications=notifications,
            failures=failures,
        )
