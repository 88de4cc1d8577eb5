from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Index, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from entitlement_api.business.entitlement.domain import BlockingState
from entitlement_api.core.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BlockingStateRecord(Base):
    __tablename__ = "blocking_state"

    id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    blocked_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    service: Mapped[str] = mapped_column(String(64), nullable=False)
    state_name: Mapped[str] = mapped_column(String(64), nullable=False)
    effective_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("blocked_id", "type", "state_name", name="uq_blocking_state_blocked_type_state"),
        Index("ix_blocking_state_blocked", "blocked_id", "type", "created_at"),
    )

    def to_domain(self) -> BlockingState:
        return BlockingState(
            blocked_id=self.blocked_id,
            type=self.type,
            service=self.service,
            state_name=self.state_name,
            effective_date=self.effective_date,
        )
