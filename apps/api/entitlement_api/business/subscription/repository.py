from __future__ import annotations

import uuid
from collections.abc import Iterable

from sqlalchemy import Select, select

from entitlement_api.business.subscription.models import Subscription, SubscriptionBundle, SubscriptionTransition


class SubscriptionBundleRepository:
    def by_id(self, bundle_id: uuid.UUID) -> Select[tuple[SubscriptionBundle]]:
        return select(SubscriptionBundle).where(SubscriptionBundle.id == bundle_id)


class SubscriptionRepository:
    def by_id(self, subscription_id: uuid.UUID) -> Select[tuple[Subscription]]:
        return select(Subscription).where(Subscription.id == subscription_id)

    def for_bundle(self, bundle_id: uuid.UUID, category: str | None = None) -> Select[tuple[Subscription]]:
        stmt = select(Subscription).where(Subscription.bundle_id == bundle_id)
        if category is not None:
            stmt = stmt.where(Subscription.category == category)
        return stmt.order_by(Subscription.created_at.asc())


class SubscriptionTransitionRepository:
    def timeline(self, subscription_id: uuid.UUID, kinds: Iterable[str] | None = None) -> Select[tuple[SubscriptionTransition]]:
        stmt = select(SubscriptionTransition).where(SubscriptionTransition.subscription_id == subscription_id)
        if kinds is not None:
            stmt = stmt.where(SubscriptionTransition.kind.in_(list(kinds)))
        return stmt.order_by(SubscriptionTransition.effective_at.asc(), SubscriptionTransition.created_at.asc())

    def unapplied(self) -> Select[tuple[SubscriptionTransition]]:
        return (
            select(SubscriptionTransition)
            .where(SubscriptionTransition.applied_at.is_(None))
            .order_by(SubscriptionTransition.effective_at.asc(), SubscriptionTransition.created_at.asc())
        )
