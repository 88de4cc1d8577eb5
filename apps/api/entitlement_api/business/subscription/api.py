from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from entitlement_api.business.subscription.schemas import (
    AddOnSubscriptionCreate,
    BaseSubscriptionCreate,
    ChargedThroughUpdate,
    SubscriptionRead,
    SubscriptionTransitionRead,
)
from entitlement_api.business.subscription.service import subscription_service
from entitlement_api.core.auth import AuthUser, get_current_user, require_role
from entitlement_api.core.database import get_db


router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/bundles", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_base_subscription(
    payload: BaseSubscriptionCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("subscription.write")),
) -> SubscriptionRead:
    return subscription_service.create_base_subscription(db, payload)


@router.get("/bundles/{bundle_id}", response_model=list[SubscriptionRead])
def list_bundle_subscriptions(
    bundle_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[SubscriptionRead]:
    return subscription_service.list_bundle_subscriptions(db, bundle_id)


@router.post("/bundles/{bundle_id}/addons", response_model=SubscriptionRead, status_code=status.HTTP_201_CREATED)
def add_addon_subscription(
    bundle_id: uuid.UUID,
    payload: AddOnSubscriptionCreate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("subscription.write")),
) -> SubscriptionRead:
    return subscription_service.add_addon_subscription(db, bundle_id, payload)


@router.get("/{subscription_id}", response_model=SubscriptionRead)
def get_subscription(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> SubscriptionRead:
    return subscription_service.get_subscription(db, subscription_id)


@router.get("/{subscription_id}/transitions", response_model=list[SubscriptionTransitionRead])
def list_subscription_transitions(
    subscription_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[SubscriptionTransitionRead]:
    return subscription_service.list_subscription_transitions(db, subscription_id)


@router.put("/{subscription_id}/charged-through", response_model=SubscriptionRead)
def set_charged_through(
    subscription_id: uuid.UUID,
    payload: ChargedThroughUpdate,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("subscription.write")),
) -> SubscriptionRead:
    return subscription_service.set_charged_through(db, subscription_id, payload)
