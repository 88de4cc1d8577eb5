from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import date, datetime, timedelta, timezone

import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entitlement_api import events
from entitlement_api.business.catalog.schemas import CatalogPlanAddOnCreate, CatalogPlanCreate, CatalogProductCreate
from entitlement_api.business.catalog.service import CatalogService
from entitlement_api.business.subscription.errors import EntitlementNotFoundError
from entitlement_api.business.subscription.schemas import (
    AddOnSubscriptionCreate,
    BaseSubscriptionCreate,
    ChargedThroughUpdate,
)
from entitlement_api.business.subscription.service import SubscriptionService
from entitlement_api.core.database import Base
from entitlement_api.core.dates import ensure_utc


START = datetime(2026, 1, 10, 9, 15, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_events() -> Generator[None, None, None]:
    events.published_events.clear()
    yield
    events.published_events.clear()


def _seed_catalog(session: Session, *, trial_days: int = 0) -> dict[str, uuid.UUID]:
    catalog = CatalogService()
    base_product = catalog.create_product(session, CatalogProductCreate(code="STREAM", name="Streaming", category="BASE"))
    hd_product = catalog.create_product(session, CatalogProductCreate(code="HD", name="HD Pack", category="ADD_ON"))
    basic = catalog.create_plan(
        session,
        CatalogPlanCreate(
            code="basic-monthly",
            name="Basic",
            product_id=base_product.id,
            billing_period="MONTHLY",
            trial_days=trial_days,
        ),
    )
    premium = catalog.create_plan(
        session,
        CatalogPlanCreate(code="premium-monthly", name="Premium", product_id=base_product.id, billing_period="MONTHLY"),
    )
    hd_plan = catalog.create_plan(
        session,
        CatalogPlanCreate(code="hd-monthly", name="HD Monthly", product_id=hd_product.id, billing_period="MONTHLY"),
    )
    catalog.add_plan_addon(session, basic.id, CatalogPlanAddOnCreate(addon_product_id=hd_product.id))
    return {"basic": basic.id, "premium": premium.id, "hd_plan": hd_plan.id, "hd_product": hd_product.id}


def _create_base(service: SubscriptionService, session: Session, plan_id: uuid.UUID):  # type: ignore[no-untyped-def]
    return service.create_base_subscription(
        session,
        BaseSubscriptionCreate(account_id=uuid.uuid4(), external_key="bundle-1", plan_id=plan_id, start_at=START),
        now=START,
    )


def test_base_subscription_with_trial_gets_phase_transition(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session, trial_days=30)

    base = _create_base(service, db_session, plans["basic"])
    assert base.category == "BASE"
    assert base.state == "ACTIVE"

    transitions = service.list_subscription_transitions(db_session, base.id)
    assert [item.kind for item in transitions] == ["CREATE", "PHASE"]
    assert ensure_utc(transitions[1].effective_at) == START + timedelta(days=30)
    assert transitions[1].applied_at is None
    assert any(item["event_type"] == "subscription.created" for item in events.published_events)


def test_addon_must_be_included_in_base_plan(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)

    base = _create_base(service, db_session, plans["premium"])
    with pytest.raises(HTTPException) as exc_info:
        service.add_addon_subscription(db_session, base.bundle_id, AddOnSubscriptionCreate(plan_id=plans["hd_plan"]), now=START)
    assert exc_info.value.status_code == 422

    other = service.create_base_subscription(
        db_session,
        BaseSubscriptionCreate(account_id=uuid.uuid4(), external_key="bundle-2", plan_id=plans["basic"], start_at=START),
        now=START,
    )
    addon = service.add_addon_subscription(db_session, other.bundle_id, AddOnSubscriptionCreate(plan_id=plans["hd_plan"]), now=START)
    assert addon.category == "ADD_ON"
    assert [item.id for item in service.list_associated_addons(db_session, other.bundle_id)] == [addon.id]


def test_addon_plan_cannot_open_a_bundle(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)

    with pytest.raises(HTTPException) as exc_info:
        _create_base(service, db_session, plans["hd_plan"])
    assert exc_info.value.status_code == 422


def test_end_of_term_cancel_is_pending_until_applied(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)
    base = _create_base(service, db_session, plans["basic"])

    charged_through = START + timedelta(days=31)
    service.set_charged_through(db_session, base.id, ChargedThroughUpdate(charged_through_at=charged_through))

    now = START + timedelta(days=3)
    transition = service.cancel(db_session, base.id, policy="END_OF_TERM", now=now)
    assert transition.kind == "CANCEL"
    assert ensure_utc(transition.effective_at) == charged_through
    assert transition.applied_at is None
    assert service.get_subscription(db_session, base.id).state == "ACTIVE"
    assert len(service.get_pending_transitions(db_session, base.id, now)) == 1

    with pytest.raises(HTTPException) as exc_info:
        service.change_plan(db_session, base.id, plans["premium"], policy="IMMEDIATE", now=now)
    assert exc_info.value.status_code == 409

    assert service.apply_due_transitions(db_session, now=charged_through - timedelta(minutes=1)) == []
    applied = service.apply_due_transitions(db_session, now=charged_through + timedelta(seconds=5))
    assert [item.kind for item in applied] == ["CANCEL"]
    assert service.get_subscription(db_session, base.id).state == "CANCELLED"

    effective_events = [item for item in events.published_events if item["event_type"] == "subscription.transition_effective"]
    assert len(effective_events) == 1
    assert effective_events[0]["kind"] == "CANCEL"
    assert effective_events[0]["effective_at"] == charged_through.isoformat()


def test_end_of_term_without_charged_through_applies_now(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)
    base = _create_base(service, db_session, plans["basic"])

    now = START + timedelta(days=2)
    transition = service.cancel(db_session, base.id, policy="END_OF_TERM", now=now)
    assert ensure_utc(transition.effective_at) == now
    assert transition.applied_at is not None
    assert service.get_subscription(db_session, base.id).state == "CANCELLED"

    with pytest.raises(HTTPException) as exc_info:
        service.cancel(db_session, base.id, policy="IMMEDIATE", now=now)
    assert exc_info.value.status_code == 409


def test_change_plan_on_requested_date_uses_reference_time(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)
    base = _create_base(service, db_session, plans["basic"])

    now = START + timedelta(days=1)
    transition = service.change_plan(db_session, base.id, plans["premium"], requested_date=date(2026, 2, 1), now=now)
    assert transition.kind == "CHANGE"
    assert ensure_utc(transition.effective_at) == datetime(2026, 2, 1, 9, 15, tzinfo=timezone.utc)
    assert transition.next_plan_id == plans["premium"]
    assert service.get_subscription(db_session, base.id).plan_id == plans["basic"]

    service.apply_due_transitions(db_session, now=datetime(2026, 2, 1, 9, 15, tzinfo=timezone.utc))
    assert service.get_subscription(db_session, base.id).plan_id == plans["premium"]


def test_immediate_change_swaps_plan(db_session: Session) -> None:
    service = SubscriptionService()
    plans = _seed_catalog(db_session)
    base = _create_base(service, db_session, plans["basic"])

    transition = service.change_plan(db_session, base.id, plans["premium"], policy="IMMEDIATE", now=START + timedelta(hours=1))
    assert transition.applied_at is not None
    assert service.get_subscription(db_session, base.id).plan_id == plans["premium"]

    with pytest.raises(HTTPException) as exc_info:
        service.change_plan(db_session, base.id, plans["premium"], policy="IMMEDIATE", now=START + timedelta(hours=2))
    assert exc_info.value.status_code == 409


def test_unknown_entitlement_raises_domain_error(db_session: Session) -> None:
    service = SubscriptionService()
    missing = uuid.uuid4()

    with pytest.raises(EntitlementNotFoundError) as exc_info:
        service.get_entitlement(db_session, missing)
    assert exc_info.value.entitlement_id == missing

    with pytest.raises(HTTPException) as http_error:
        service.get_subscription(db_session, missing)
    assert http_error.value.status_code == 404
