from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from entitlement_api.business.entitlement.domain import ENT_STATE_CANCELLED, BlockingState
from entitlement_api.business.entitlement.models import BlockingStateRecord
from entitlement_api.business.entitlement.repository import BlockingStateRepository
from entitlement_api.metrics import observe_blocking_state_append


logger = logging.getLogger("entitlement_api.entitlement.dao")


@dataclass(slots=True)
class BlockingStateDao:
    """Append-only store of blocking states.

    Appends never commit; the caller owns the transaction boundary.
    """

    repository: BlockingStateRepository = BlockingStateRepository()

    def append_if_absent(self, session: Session, state: BlockingState) -> bool:
        """Record ``state`` unless one with the same name already exists for the entity.

        Returns False when the entity was already blocked, including when a
        concurrent writer won the race on the unique constraint.
        """
        existing = session.scalar(self.repository.for_state(state.blocked_id, state.type, state.state_name))
        if existing is not None:
            self._report(state, appended=False)
            return False

        record = BlockingStateRecord(
            blocked_id=state.blocked_id,
            type=state.type,
            service=state.service,
            state_name=state.state_name,
            effective_date=state.effective_date,
        )
        try:
            with session.begin_nested():
                session.add(record)
        except IntegrityError:
            self._report(state, appended=False)
            return False

        self._report(state, appended=True)
        return True

    def get_all(self, session: Session, blocked_id: uuid.UUID, state_type: str) -> list[BlockingState]:
        rows = session.scalars(self.repository.for_blocked(blocked_id, state_type)).all()
        return [row.to_domain() for row in rows]

    def get_cancellation(self, session: Session, blocked_id: uuid.UUID, state_type: str) -> BlockingState | None:
        row = session.scalar(self.repository.for_state(blocked_id, state_type, ENT_STATE_CANCELLED))
        return row.to_domain() if row is not None else None

    @staticmethod
    def _report(state: BlockingState, *, appended: bool) -> None:
        observe_blocking_state_append(state.type, state.state_name, appended=appended)
        logger.info(
            "blocking_state.appended" if appended else "blocking_state.already_present",
            extra={
                "blocked_id": str(state.blocked_id),
                "effective_at": state.effective_date.isoformat(),
            },
        )


blocking_state_dao = BlockingStateDao()
