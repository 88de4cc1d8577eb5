from __future__ import annotations

import uuid
from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Select, create_engine, event, false, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from entitlement_api.business.entitlement.dao import BlockingStateDao
from entitlement_api.business.entitlement.domain import (
    BLOCKING_TYPE_SUBSCRIPTION,
    ENT_STATE_CANCELLED,
    ENTITLEMENT_SERVICE_NAME,
    BlockingState,
)
from entitlement_api.business.entitlement.models import BlockingStateRecord
from entitlement_api.business.entitlement.repository import BlockingStateRepository
from entitlement_api.core.database import Base


AT = datetime(2026, 2, 10, 9, 15, tzinfo=timezone.utc)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # let SQLAlchemy drive BEGIN so SAVEPOINTs nest inside the outer transaction
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


class _BlindGuardRepository(BlockingStateRepository):
    """Guard query that never sees existing rows, as when a concurrent writer commits first."""

    def for_state(self, blocked_id: uuid.UUID, state_type: str, state_name: str) -> Select[tuple[BlockingStateRecord]]:
        return super().for_state(blocked_id, state_type, state_name).where(false())


def _count(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(BlockingStateRecord)) or 0


def test_append_if_absent_records_once(db_session: Session) -> None:
    dao = BlockingStateDao()
    addon_id = uuid.uuid4()
    state = BlockingState.cancelled(addon_id, AT)

    assert state.service == ENTITLEMENT_SERVICE_NAME
    assert state.state_name == ENT_STATE_CANCELLED
    assert dao.append_if_absent(db_session, state) is True
    assert dao.append_if_absent(db_session, state) is False
    assert dao.append_if_absent(db_session, BlockingState.cancelled(addon_id, AT + timedelta(days=1))) is False
    db_session.commit()

    recorded = dao.get_all(db_session, addon_id, BLOCKING_TYPE_SUBSCRIPTION)
    assert recorded == [state]
    assert dao.get_cancellation(db_session, addon_id, BLOCKING_TYPE_SUBSCRIPTION) == state


def test_unique_constraint_conflict_reads_as_already_blocked(db_session: Session) -> None:
    dao = BlockingStateDao(repository=_BlindGuardRepository())
    other_id = uuid.uuid4()
    addon_id = uuid.uuid4()

    assert dao.append_if_absent(db_session, BlockingState.cancelled(other_id, AT)) is True
    assert dao.append_if_absent(db_session, BlockingState.cancelled(addon_id, AT)) is True
    assert dao.append_if_absent(db_session, BlockingState.cancelled(addon_id, AT)) is False

    # the failed savepoint leaves earlier appends of the transaction intact
    db_session.commit()
    assert _count(db_session) == 2


def test_rollback_discards_uncommitted_appends(db_session: Session) -> None:
    dao = BlockingStateDao()
    addon_id = uuid.uuid4()

    assert dao.append_if_absent(db_session, BlockingState.cancelled(addon_id, AT)) is True
    db_session.rollback()

    assert dao.get_all(db_session, addon_id, BLOCKING_TYPE_SUBSCRIPTION) == []
    assert dao.get_cancellation(db_session, addon_id, BLOCKING_TYPE_SUBSCRIPTION) is None


def test_get_all_keeps_insertion_order_and_naive_values_are_utc(db_session: Session) -> None:
    dao = BlockingStateDao()
    blocked_id = uuid.uuid4()
    first = BlockingState(
        blocked_id=blocked_id,
        type=BLOCKING_TYPE_SUBSCRIPTION,
        service="billing-service",
        state_name="PAUSED",
        effective_date=AT + timedelta(days=5),
    )
    second = BlockingState.cancelled(blocked_id, AT)

    dao.append_if_absent(db_session, first)
    dao.append_if_absent(db_session, second)
    db_session.commit()

    recorded = dao.get_all(db_session, blocked_id, BLOCKING_TYPE_SUBSCRIPTION)
    assert [item.state_name for item in recorded] == ["PAUSED", ENT_STATE_CANCELLED]
    assert all(item.effective_date.tzinfo is not None for item in recorded)
    assert dao.get_cancellation(db_session, blocked_id, BLOCKING_TYPE_SUBSCRIPTION) == second
