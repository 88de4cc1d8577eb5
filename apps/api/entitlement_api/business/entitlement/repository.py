from __future__ import annotations

import uuid

from sqlalchemy import Select, select

from entitlement_api.business.entitlement.models import BlockingStateRecord


class BlockingStateRepository:
    def for_blocked(self, blocked_id: uuid.UUID, state_type: str) -> Select[tuple[BlockingStateRecord]]:
        return (
            select(BlockingStateRecord)
            .where(BlockingStateRecord.blocked_id == blocked_id, BlockingStateRecord.type == state_type)
            .order_by(BlockingStateRecord.created_at.asc(), BlockingStateRecord.effective_date.asc())
        )

    def for_state(self, blocked_id: uuid.UUID, state_type: str, state_name: str) -> Select[tuple[BlockingStateRecord]]:
        return select(BlockingStateRecord).where(
            BlockingStateRecord.blocked_id == blocked_id,
            BlockingStateRecord.type == state_type,
            BlockingStateRecord.state_name == state_name,
        )
