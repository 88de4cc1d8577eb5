from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entitlement_api import events
from entitlement_api.business.subscription.models import SubscriptionTransition
from entitlement_api.core.auth import AuthUser, get_current_user
from entitlement_api.core.database import Base, get_db
from entitlement_api.main import app


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def roles() -> list[str]:
    return [
        "user",
        "catalog.write",
        "subscription.write",
        "entitlement.write",
        "entitlement.notifications.process",
    ]


@pytest.fixture()
def client(db_session: Session, roles: list[str]) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    def override_get_current_user() -> AuthUser:
        return AuthUser(sub="entitlement-user", roles=roles)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    events.published_events.clear()

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
    events.published_events.clear()


def _parse(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _seed(client: TestClient) -> dict[str, str]:
    def post(path: str, payload: dict) -> dict:  # type: ignore[type-arg]
        response = client.post(path, json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    stream = post("/catalog/products", {"code": "STREAM", "name": "Streaming", "category": "BASE"})
    hd = post("/catalog/products", {"code": "HD", "name": "HD Pack", "category": "ADD_ON"})
    offline = post("/catalog/products", {"code": "OFFLINE", "name": "Offline Pack", "category": "ADD_ON"})
    basic = post(
        "/catalog/plans",
        {"code": "basic-monthly", "name": "Basic", "product_id": stream["id"], "billing_period": "MONTHLY"},
    )
    premium = post(
        "/catalog/plans",
        {"code": "premium-monthly", "name": "Premium", "product_id": stream["id"], "billing_period": "MONTHLY"},
    )
    hd_plan = post("/catalog/plans", {"code": "hd-monthly", "name": "HD", "product_id": hd["id"], "billing_period": "MONTHLY"})
    offline_plan = post(
        "/catalog/plans",
        {"code": "offline-monthly", "name": "Offline", "product_id": offline["id"], "billing_period": "MONTHLY"},
    )
    post(f"/catalog/plans/{basic['id']}/addons", {"addon_product_id": hd["id"]})
    post(f"/catalog/plans/{basic['id']}/addons", {"addon_product_id": offline["id"]})
    post(f"/catalog/plans/{premium['id']}/addons", {"addon_product_id": offline["id"]})

    base = post(
        "/subscriptions/bundles",
        {"account_id": str(uuid.uuid4()), "external_key": "acct-api", "plan_id": basic["id"]},
    )
    hd_sub = post(f"/subscriptions/bundles/{base['bundle_id']}/addons", {"plan_id": hd_plan["id"]})
    offline_sub = post(f"/subscriptions/bundles/{base['bundle_id']}/addons", {"plan_id": offline_plan["id"]})

    charged_through = (datetime.now(timezone.utc) + timedelta(days=30)).replace(microsecond=0)
    response = client.put(
        f"/subscriptions/{base['id']}/charged-through",
        json={"charged_through_at": charged_through.isoformat()},
    )
    assert response.status_code == 200

    return {
        "base": base["id"],
        "bundle": base["bundle_id"],
        "hd": hd_sub["id"],
        "offline": offline_sub["id"],
        "premium": premium["id"],
        "hd_product": hd["id"],
        "basic": basic["id"],
        "charged_through": charged_through.isoformat(),
    }


def test_catalog_inclusion_endpoint(client: TestClient) -> None:
    seeded = _seed(client)

    included = client.get(f"/catalog/plans/{seeded['basic']}/addons/{seeded['hd_product']}/included")
    assert included.status_code == 200
    assert included.json()["included"] is True

    excluded = client.get(
        f"/catalog/plans/{seeded['premium']}/addons/{seeded['hd_product']}/included",
        params={"as_of": "2026-05-01"},
    )
    assert excluded.status_code == 200
    assert excluded.json()["included"] is False

    unknown = client.get(f"/catalog/plans/{uuid.uuid4()}/addons/{seeded['hd_product']}/included")
    assert unknown.status_code == 422


def test_bundle_listing_and_transitions(client: TestClient) -> None:
    seeded = _seed(client)

    listing = client.get(f"/subscriptions/bundles/{seeded['bundle']}")
    assert listing.status_code == 200
    assert [item["category"] for item in listing.json()] == ["BASE", "ADD_ON", "ADD_ON"]

    transitions = client.get(f"/subscriptions/{seeded['base']}/transitions")
    assert transitions.status_code == 200
    assert [item["kind"] for item in transitions.json()] == ["CREATE"]

    assert client.get(f"/subscriptions/{uuid.uuid4()}").status_code == 404


def test_cancel_end_of_term_projects_and_applies(client: TestClient) -> None:
    seeded = _seed(client)
    charged_through = _parse(seeded["charged_through"])

    cancelled = client.post(
        f"/entitlements/{seeded['base']}/cancel",
        json={"entitlement_policy": "END_OF_TERM", "billing_policy": "END_OF_TERM"},
    )
    assert cancelled.status_code == 200, cancelled.text
    body = cancelled.json()
    assert _parse(body["transition"]["effective_at"]) == charged_through
    assert body["blocking_states"] == []

    future = client.get(f"/entitlements/{seeded['base']}/blocking-states/future")
    assert future.status_code == 200
    assert {item["blocked_id"] for item in future.json()} == {seeded["hd"], seeded["offline"]}
    assert all(_parse(item["effective_date"]) == charged_through for item in future.json())

    on_disk = client.get(f"/entitlements/{seeded['hd']}/blocking-states")
    assert on_disk.status_code == 200
    assert on_disk.json() == []

    with_future = client.get(f"/entitlements/{seeded['hd']}/blocking-states", params={"include_future": "true"})
    assert with_future.status_code == 200
    assert [item["state_name"] for item in with_future.json()] == ["ENT_CANCELLED"]

    for _ in range(2):
        applied = client.post(
            f"/entitlements/{seeded['base']}/blocking-states/apply",
            json={"effective_at": seeded["charged_through"]},
        )
        assert applied.status_code == 200
        assert len(applied.json()) == 2

    recorded = client.get(f"/entitlements/{seeded['hd']}/blocking-states")
    assert len(recorded.json()) == 1
    assert recorded.json()[0]["service"] == "entitlement-service"


def test_immediate_change_returns_recorded_states(client: TestClient) -> None:
    seeded = _seed(client)

    changed = client.post(
        f"/entitlements/{seeded['base']}/change-plan",
        json={"plan_id": seeded["premium"], "policy": "IMMEDIATE"},
    )
    assert changed.status_code == 200, changed.text
    assert [item["blocked_id"] for item in changed.json()["blocking_states"]] == [seeded["hd"]]

    again = client.post(
        f"/entitlements/{seeded['base']}/change-plan",
        json={"plan_id": seeded["premium"], "policy": "IMMEDIATE"},
    )
    assert again.status_code == 409


def test_domain_errors_map_to_http(client: TestClient, db_session: Session) -> None:
    seeded = _seed(client)

    missing = client.get(f"/entitlements/{uuid.uuid4()}/blocking-states/future")
    assert missing.status_code == 404

    charged_through = _parse(seeded["charged_through"])
    base_id = uuid.UUID(seeded["base"])
    db_session.add(SubscriptionTransition(subscription_id=base_id, kind="CANCEL", effective_at=charged_through))
    db_session.add(
        SubscriptionTransition(
            subscription_id=base_id,
            kind="CHANGE",
            effective_at=charged_through + timedelta(days=1),
            next_plan_id=uuid.UUID(seeded["premium"]),
        )
    )
    db_session.commit()

    conflict = client.get(f"/entitlements/{seeded['base']}/blocking-states/future")
    assert conflict.status_code == 409


def test_unknown_plan_in_change_maps_to_422(client: TestClient, db_session: Session) -> None:
    seeded = _seed(client)
    effective_at = _parse(seeded["charged_through"])
    db_session.add(
        SubscriptionTransition(
            subscription_id=uuid.UUID(seeded["base"]),
            kind="CHANGE",
            effective_at=effective_at,
            next_plan_id=uuid.uuid4(),
        )
    )
    db_session.commit()

    response = client.post(
        f"/entitlements/{seeded['base']}/blocking-states/apply",
        json={"effective_at": seeded["charged_through"]},
    )
    assert response.status_code == 422
    assert client.get(f"/entitlements/{seeded['hd']}/blocking-states").json() == []


def test_notification_processing_endpoint(client: TestClient) -> None:
    seeded = _seed(client)

    cancelled = client.post(
        f"/entitlements/{seeded['base']}/cancel",
        json={"entitlement_policy": "IMMEDIATE", "billing_policy": "IMMEDIATE"},
    )
    assert cancelled.status_code == 200
    assert len(cancelled.json()["blocking_states"]) == 2

    processed = client.post("/entitlements/notifications/process")
    assert processed.status_code == 200
    assert processed.json()["transition_count"] == 0


@pytest.mark.parametrize("roles", [["user"]])
def test_notification_processing_requires_role(client: TestClient) -> None:
    response = client.post("/entitlements/notifications/process")
    assert response.status_code == 403
    assert response.json()["detail"] == "Missing permission: entitlement.notifications.process"


@pytest.mark.parametrize("roles", [["user"]])
def test_entitlement_mutations_require_write_role(client: TestClient) -> None:
    entitlement_id = uuid.uuid4()

    cancel = client.post(
        f"/entitlements/{entitlement_id}/cancel",
        json={"entitlement_policy": "IMMEDIATE", "billing_policy": "IMMEDIATE"},
    )
    assert cancel.status_code == 403
    assert cancel.json()["detail"] == "Missing permission: entitlement.write"

    change = client.post(f"/entitlements/{entitlement_id}/change-plan", json={"plan_id": str(uuid.uuid4())})
    assert change.status_code == 403

    apply = client.post(
        f"/entitlements/{entitlement_id}/blocking-states/apply",
        json={"effective_at": "2026-05-01T10:00:00+00:00"},
    )
    assert apply.status_code == 403

    readable = client.get(f"/entitlements/{entitlement_id}/blocking-states")
    assert readable.status_code == 200
    assert readable.json() == []
