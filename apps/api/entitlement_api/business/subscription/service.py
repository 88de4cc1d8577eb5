from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from fastapi import HTTPException, status
from sqlalchemy.orm import Session, selectinload

from entitlement_api import events
from entitlement_api.business.catalog.errors import CatalogResolutionError
from entitlement_api.business.catalog.models import CatalogPlan
from entitlement_api.business.catalog.service import catalog_service
from entitlement_api.business.subscription.errors import EntitlementNotFoundError
from entitlement_api.business.subscription.models import Subscription, SubscriptionBundle, SubscriptionTransition
from entitlement_api.business.subscription.repository import (
    SubscriptionBundleRepository,
    SubscriptionRepository,
    SubscriptionTransitionRepository,
)
from entitlement_api.business.subscription.schemas import (
    AddOnSubscriptionCreate,
    BaseSubscriptionCreate,
    ChargedThroughUpdate,
    SubscriptionRead,
    SubscriptionTransitionRead,
)
from entitlement_api.core.dates import at_reference_time, ensure_utc, utcnow
from entitlement_api.metrics import observe_transition_applied


logger = logging.getLogger("entitlement_api.subscription")

PENDING_ACTION_KINDS = ("CANCEL", "CHANGE")


@dataclass(slots=True)
class SubscriptionService:
    bundle_repository: SubscriptionBundleRepository = SubscriptionBundleRepository()
    subscription_repository: SubscriptionRepository = SubscriptionRepository()
    transition_repository: SubscriptionTransitionRepository = SubscriptionTransitionRepository()

    # Lifecycle

    def create_base_subscription(
        self,
        session: Session,
        payload: BaseSubscriptionCreate,
        *,
        now: datetime | None = None,
    ) -> SubscriptionRead:
        now = ensure_utc(now) if now is not None else utcnow()
        plan = self._get_catalog_plan(session, payload.plan_id)
        if plan.product.category != "BASE":
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="plan is not a BASE plan")

        bundle = SubscriptionBundle(account_id=payload.account_id, external_key=payload.external_key)
        session.add(bundle)
        session.flush()

        start_at = ensure_utc(payload.start_at) if payload.start_at is not None else now
        subscription = self._open_subscription(session, bundle, plan, "BASE", start_at, now)
        session.commit()
        session.refresh(subscription)
        self._emit_subscription_event("subscription.created", subscription)
        return SubscriptionRead.model_validate(subscription)

    def add_addon_subscription(
        self,
        session: Session,
        bundle_id: uuid.UUID,
        payload: AddOnSubscriptionCreate,
        *,
        now: datetime | None = None,
    ) -> SubscriptionRead:
        now = ensure_utc(now) if now is not None else utcnow()
        bundle = session.scalar(self.bundle_repository.by_id(bundle_id))
        if bundle is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="bundle not found")

        base = self.get_base_subscription(session, bundle.id)
        if base is None or base.state != "ACTIVE":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="bundle has no active base subscription")

        plan = self._get_catalog_plan(session, payload.plan_id)
        if plan.product.category != "ADD_ON":
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="plan is not an ADD_ON plan")

        start_at = ensure_utc(payload.start_at) if payload.start_at is not None else now
        try:
            included = catalog_service.is_addon_included(session, base.plan_id, plan.product_id, start_at.date())
        except CatalogResolutionError as exc:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
        if not included:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail="add-on product is not available for the base plan",
            )

        subscription = self._open_subscription(session, bundle, plan, "ADD_ON", start_at, now)
        session.commit()
        session.refresh(subscription)
        self._emit_subscription_event("subscription.created", subscription)
        return SubscriptionRead.model_validate(subscription)

    def set_charged_through(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        payload: ChargedThroughUpdate,
    ) -> SubscriptionRead:
        subscription = self._get_subscription(session, subscription_id)
        subscription.charged_through_at = ensure_utc(payload.charged_through_at)
        session.add(subscription)
        session.commit()
        session.refresh(subscription)
        return SubscriptionRead.model_validate(subscription)

    def cancel(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        *,
        policy: str,
        now: datetime | None = None,
    ) -> SubscriptionTransition:
        """Schedule (or apply, when due) the cancellation of a subscription.

        The transition is committed before returning so that callers reacting
        to it observe a durable timeline.
        """
        now = ensure_utc(now) if now is not None else utcnow()
        subscription = self._get_subscription(session, subscription_id)
        self._assert_can_schedule(session, subscription, now)

        effective_at = self.resolve_policy_time(subscription, policy, now)
        transition = SubscriptionTransition(
            subscription_id=subscription.id,
            kind="CANCEL",
            effective_at=effective_at,
            previous_plan_id=subscription.plan_id,
        )
        return self._schedule(session, subscription, transition, now)

    def change_plan(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        plan_id: uuid.UUID,
        *,
        policy: str = "END_OF_TERM",
        requested_date: date | None = None,
        now: datetime | None = None,
    ) -> SubscriptionTransition:
        now = ensure_utc(now) if now is not None else utcnow()
        subscription = self._get_subscription(session, subscription_id)
        self._assert_can_schedule(session, subscription, now)

        plan = self._get_catalog_plan(session, plan_id)
        if plan.id == subscription.plan_id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="subscription is already on this plan")
        if plan.product.category != subscription.category:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="plan category mismatch")

        if requested_date is not None:
            effective_at = max(at_reference_time(requested_date, subscription.start_at), now)
        else:
            effective_at = self.resolve_policy_time(subscription, policy, now)

        transition = SubscriptionTransition(
            subscription_id=subscription.id,
            kind="CHANGE",
            effective_at=effective_at,
            previous_plan_id=subscription.plan_id,
            next_plan_id=plan.id,
        )
        return self._schedule(session, subscription, transition, now)

    def apply_due_transitions(self, session: Session, *, now: datetime | None = None) -> list[SubscriptionTransition]:
        now = ensure_utc(now) if now is not None else utcnow()
        due = self.due_transitions(session, now=now)
        for transition in due:
            self.mark_applied(transition, now)
        if due:
            session.commit()
            for transition in due:
                self.report_applied(transition)
        logger.info(
            "subscription.transitions_applied",
            extra={"transition_count": len(due), "effective_at": now.isoformat()},
        )
        return due

    def due_transitions(self, session: Session, *, now: datetime) -> list[SubscriptionTransition]:
        now = ensure_utc(now)
        pending = session.scalars(self.transition_repository.unapplied()).all()
        return [row for row in pending if ensure_utc(row.effective_at) <= now]

    def mark_applied(self, transition: SubscriptionTransition, now: datetime) -> None:
        """Apply ``transition`` to its subscription without committing.

        The caller commits, so the change can share a transaction with the
        work that depends on it.
        """
        self._apply(transition, ensure_utc(now))

    def report_applied(self, transition: SubscriptionTransition) -> None:
        self._emit_transition_event(transition)
        observe_transition_applied(transition.kind)

    @staticmethod
    def resolve_policy_time(subscription: Subscription, policy: str, now: datetime) -> datetime:
        if policy == "IMMEDIATE":
            return now
        if policy != "END_OF_TERM":
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=f"unknown policy '{policy}'")
        if subscription.charged_through_at is None:
            return now
        return max(ensure_utc(subscription.charged_through_at), now)

    # Reads

    def get_subscription(self, session: Session, subscription_id: uuid.UUID) -> SubscriptionRead:
        return SubscriptionRead.model_validate(self._get_subscription(session, subscription_id))

    def list_bundle_subscriptions(self, session: Session, bundle_id: uuid.UUID) -> list[SubscriptionRead]:
        if session.scalar(self.bundle_repository.by_id(bundle_id)) is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="bundle not found")
        rows = session.scalars(self.subscription_repository.for_bundle(bundle_id)).all()
        return [SubscriptionRead.model_validate(row) for row in rows]

    def list_subscription_transitions(self, session: Session, subscription_id: uuid.UUID) -> list[SubscriptionTransitionRead]:
        subscription = self._get_subscription(session, subscription_id)
        rows = self.list_transitions(session, subscription.id)
        return [SubscriptionTransitionRead.model_validate(row) for row in rows]

    # Timeline reader used by the blocking-state engine

    def get_entitlement(self, session: Session, entitlement_id: uuid.UUID) -> Subscription:
        subscription = session.scalar(self.subscription_repository.by_id(entitlement_id))
        if subscription is None:
            raise EntitlementNotFoundError(entitlement_id)
        return subscription

    def list_transitions(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        kinds: Iterable[str] | None = None,
    ) -> list[SubscriptionTransition]:
        return list(session.scalars(self.transition_repository.timeline(subscription_id, kinds)).all())

    def get_pending_transitions(
        self,
        session: Session,
        subscription_id: uuid.UUID,
        now: datetime,
        kinds: Iterable[str] = PENDING_ACTION_KINDS,
    ) -> list[SubscriptionTransition]:
        now = ensure_utc(now)
        return [row for row in self.list_transitions(session, subscription_id, kinds) if ensure_utc(row.effective_at) > now]

    def get_base_subscription(self, session: Session, bundle_id: uuid.UUID) -> Subscription | None:
        return session.scalar(self.subscription_repository.for_bundle(bundle_id, "BASE"))

    def list_associated_addons(self, session: Session, bundle_id: uuid.UUID) -> list[Subscription]:
        return list(session.scalars(self.subscription_repository.for_bundle(bundle_id, "ADD_ON")).all())

    # Internals

    def _open_subscription(
        self,
        session: Session,
        bundle: SubscriptionBundle,
        plan: CatalogPlan,
        category: str,
        start_at: datetime,
        now: datetime,
    ) -> Subscription:
        subscription = Subscription(
            bundle_id=bundle.id,
            plan_id=plan.id,
            category=category,
            state="ACTIVE",
            start_at=start_at,
        )
        session.add(subscription)
        session.flush()

        session.add(
            SubscriptionTransition(
                subscription_id=subscription.id,
                kind="CREATE",
                effective_at=start_at,
                next_plan_id=plan.id,
                applied_at=now,
            )
        )
        if plan.trial_days > 0:
            phase_at = start_at + timedelta(days=plan.trial_days)
            session.add(
                SubscriptionTransition(
                    subscription_id=subscription.id,
                    kind="PHASE",
                    effective_at=phase_at,
                    previous_plan_id=plan.id,
                    next_plan_id=plan.id,
                    applied_at=now if phase_at <= now else None,
                )
            )
        return subscription

    def _schedule(
        self,
        session: Session,
        subscription: Subscription,
        transition: SubscriptionTransition,
        now: datetime,
    ) -> SubscriptionTransition:
        session.add(transition)
        applied = transition.effective_at <= now
        if applied:
            self._apply(transition, now, subscription=subscription)
        session.commit()
        session.refresh(transition)

        logger.info(
            "subscription.transition_scheduled",
            extra={
                "subscription_id": str(subscription.id),
                "effective_at": ensure_utc(transition.effective_at).isoformat(),
                "trigger": transition.kind,
            },
        )
        if applied:
            self.report_applied(transition)
        return transition

    @staticmethod
    def _apply(transition: SubscriptionTransition, now: datetime, *, subscription: Subscription | None = None) -> None:
        target = subscription if subscription is not None else transition.subscription
        if transition.kind == "CHANGE" and transition.next_plan_id is not None:
            target.plan_id = transition.next_plan_id
        elif transition.kind == "CANCEL":
            target.state = "CANCELLED"
        transition.applied_at = now

    def _assert_can_schedule(self, session: Session, subscription: Subscription, now: datetime) -> None:
        if subscription.state != "ACTIVE":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="subscription is not ACTIVE")
        if self.get_pending_transitions(session, subscription.id, now):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="subscription already has a pending cancel or plan change",
            )

    def _get_subscription(self, session: Session, subscription_id: uuid.UUID) -> Subscription:
        subscription = session.scalar(self.subscription_repository.by_id(subscription_id))
        if subscription is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="subscription not found")
        return subscription

    @staticmethod
    def _get_catalog_plan(session: Session, plan_id: uuid.UUID) -> CatalogPlan:
        plan = session.scalar(
            catalog_service.plan_repository.by_id(plan_id).options(selectinload(CatalogPlan.product))
        )
        if plan is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="plan not found")
        return plan

    def _emit_subscription_event(self, event_type: str, subscription: Subscription) -> None:
        events.publish(
            {
                "event_type": event_type,
                "subscription_id": str(subscription.id),
                "bundle_id": str(subscription.bundle_id),
                "category": subscription.category,
                "plan_id": str(subscription.plan_id),
                "start_at": ensure_utc(subscription.start_at).isoformat(),
            }
        )

    def _emit_transition_event(self, transition: SubscriptionTransition) -> None:
        subscription = transition.subscription
        events.publish(
            {
                "event_type": "subscription.transition_effective",
                "subscription_id": str(subscription.id),
                "bundle_id": str(subscription.bundle_id),
                "category": subscription.category,
                "kind": transition.kind,
                "transition_id": str(transition.id),
                "effective_at": ensure_utc(transition.effective_at).isoformat(),
            }
        )


subscription_service = SubscriptionService()
