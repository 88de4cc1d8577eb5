from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from entitlement_api.business.catalog.errors import CatalogResolutionError
from entitlement_api.business.entitlement.dao import blocking_state_dao
from entitlement_api.business.entitlement.domain import BLOCKING_TYPE_SUBSCRIPTION
from entitlement_api.business.entitlement.engine import blocking_state_engine
from entitlement_api.business.entitlement.notifications import process_due_notifications
from entitlement_api.business.entitlement.proxy import proxy_blocking_state_dao
from entitlement_api.business.entitlement.schemas import (
    BlockingStateRead,
    EffectiveTransitionRequest,
    EntitlementActionRead,
    EntitlementCancelRequest,
    EntitlementChangePlanRequest,
    NotificationProcessRead,
)
from entitlement_api.business.entitlement.service import entitlement_service
from entitlement_api.business.subscription.errors import (
    EntitlementError,
    EntitlementNotFoundError,
    MultiplePendingTransitionsError,
)
from entitlement_api.core.auth import AuthUser, get_current_user, require_role
from entitlement_api.core.database import get_db


router = APIRouter(prefix="/entitlements", tags=["entitlements"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, EntitlementNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, MultiplePendingTransitionsError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, CatalogResolutionError):
        return HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.post("/notifications/process", response_model=NotificationProcessRead)
def process_notifications(
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("entitlement.notifications.process")),
) -> NotificationProcessRead:
    return process_due_notifications(db)


@router.post("/{entitlement_id}/cancel", response_model=EntitlementActionRead)
def cancel_entitlement(
    entitlement_id: uuid.UUID,
    payload: EntitlementCancelRequest,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("entitlement.write")),
) -> EntitlementActionRead:
    try:
        return entitlement_service.cancel_entitlement(
            db,
            entitlement_id,
            entitlement_policy=payload.entitlement_policy,
            billing_policy=payload.billing_policy,
        )
    except (EntitlementError, CatalogResolutionError) as exc:
        raise _http_error(exc)


@router.post("/{entitlement_id}/change-plan", response_model=EntitlementActionRead)
def change_plan(
    entitlement_id: uuid.UUID,
    payload: EntitlementChangePlanRequest,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("entitlement.write")),
) -> EntitlementActionRead:
    try:
        return entitlement_service.change_plan(
            db,
            entitlement_id,
            payload.plan_id,
            policy=payload.policy,
            requested_date=payload.requested_date,
        )
    except (EntitlementError, CatalogResolutionError) as exc:
        raise _http_error(exc)


@router.get("/{entitlement_id}/blocking-states", response_model=list[BlockingStateRead])
def list_blocking_states(
    entitlement_id: uuid.UUID,
    include_future: bool = Query(default=False),
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[BlockingStateRead]:
    try:
        if include_future:
            states = proxy_blocking_state_dao.get_blocking_all(db, entitlement_id, BLOCKING_TYPE_SUBSCRIPTION)
        else:
            states = blocking_state_dao.get_all(db, entitlement_id, BLOCKING_TYPE_SUBSCRIPTION)
    except (EntitlementError, CatalogResolutionError) as exc:
        raise _http_error(exc)
    return [BlockingStateRead.model_validate(state) for state in states]


@router.get("/{entitlement_id}/blocking-states/future", response_model=list[BlockingStateRead])
def compute_future_blocking_states(
    entitlement_id: uuid.UUID,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(get_current_user),
) -> list[BlockingStateRead]:
    try:
        states = blocking_state_engine.compute_future_blocking_states(db, entitlement_id)
    except (EntitlementError, CatalogResolutionError) as exc:
        raise _http_error(exc)
    return [BlockingStateRead.model_validate(state) for state in states]


@router.post("/{entitlement_id}/blocking-states/apply", response_model=list[BlockingStateRead])
def apply_effective_transition(
    entitlement_id: uuid.UUID,
    payload: EffectiveTransitionRequest,
    db: Session = Depends(get_db),
    _: AuthUser = Depends(require_role("entitlement.write")),
) -> list[BlockingStateRead]:
    """Record the add-on states caused by the base transition that fired at ``effective_at``.

    ``effective_at`` is matched against the base's cancel/change transitions by
    calendar day and minute of day (UTC). A time that falls in a different
    minute than the transition, even by less than a second across a minute
    boundary, matches nothing and the response is an empty list. Callers should
    pass the transition's ``effective_at`` as returned by
    ``GET /subscriptions/{id}/transitions``.
    """
    try:
        states = blocking_state_engine.compute_blocking_states_for_effective_transition(db, entitlement_id, payload.effective_at)
    except (EntitlementError, CatalogResolutionError) as exc:
        raise _http_error(exc)
    return [BlockingStateRead.model_validate(state) for state in states]
