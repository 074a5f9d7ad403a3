from __future__ import annotations

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.domain.decision import Decision, DecisionEvent, DecisionEventType, DecisionStatus
from cfpdesk.domain.errors import NotFoundError
from cfpdesk.infrastructure.stores.models import (
    Base,
    DecisionEventModel,
    DecisionModel,
    SubmissionModel,
)
from cfpdesk.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


class DecisionStore:
    """
    Accept/reject decision per submission, kept apart from pipeline status.

    ``decide`` always overwrites the current row and appends a DecisionEvent, so the
    previous decision (and who made it) survives in the event history. Neither the
    submission status nor any email is touched here.
    """

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        clock: Optional[Clock] = None,
    ):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        self._clock = clock or SystemClock()
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    def decide(
        self,
        submission_id: str,
        decision: DecisionStatus,
        *,
        notes: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> Decision:
        new_status = DecisionStatus.parse_final(decision)
        notes = (notes or "").strip() or None

        args = (submission_id, new_status, notes, decided_by, self._clock.now())
        try:
            return self._decide_once(*args)
        except IntegrityError:
            # Lost a race to insert the first decision; the row exists now, so update it.
            return self._decide_once(*args)

    def _decide_once(self, submission_id, new_status, notes, decided_by, now) -> Decision:
        with self._provider.session() as session:
            if session.get(SubmissionModel, submission_id) is None:
                raise NotFoundError("submission", submission_id)
            try:
                row = self._write(session, submission_id, new_status, notes, decided_by, now)
                session.commit()
            except IntegrityError:
                session.rollback()
                raise
            return self._to_domain(row)

    def _current_row(self, session, submission_id: str) -> Optional[DecisionModel]:
        return session.get(DecisionModel, submission_id)

    def _write(self, session, submission_id, new_status, notes, decided_by, now) -> DecisionModel:
        row = self._current_row(session, submission_id)
        previous = DecisionStatus(row.decision_status) if row else DecisionStatus.UNDECIDED

        if row is None:
            row = DecisionModel(submission_id=submission_id)
            session.add(row)
        row.decision_status = new_status.value
        row.notes = notes
        row.decided_at = now
        row.decided_by = decided_by

        changed = previous not in (DecisionStatus.UNDECIDED, new_status)
        session.add(
            DecisionEventModel(
                submission_id=submission_id,
                event_type=(
                    DecisionEventType.DECISION_CHANGED if changed else DecisionEventType.DECISION_MADE
                ).value,
                previous_status=previous.value,
                new_status=new_status.value,
                admin_id=decided_by,
                notes=notes,
                created_at=now,
            )
        )
        session.flush()
        return row

    def get_decision(self, submission_id: str) -> Decision:
        with self._provider.session() as session:
            row = session.get(DecisionModel, submission_id)
            if row is None:
                return Decision.undecided(submission_id)
            return self._to_domain(row)

    def list_events(self, submission_id: str) -> List[DecisionEvent]:
        with self._provider.session() as session:
            rows = session.execute(
                select(DecisionEventModel)
                .where(DecisionEventModel.submission_id == submission_id)
                .order_by(DecisionEventModel.created_at.asc(), DecisionEventModel.id.asc())
            ).scalars().all()
            return [
                DecisionEvent(
                    id=r.id,
                    submission_id=r.submission_id,
                    event_type=DecisionEventType(r.event_type),
                    previous_status=DecisionStatus(r.previous_status),
                    new_status=DecisionStatus(r.new_status),
                    admin_id=r.admin_id,
                    notes=r.notes,
                    created_at=r.created_at,
                )
                for r in rows
            ]

    def close(self) -> None:
        self._provider.engine.dispose()

    @staticmethod
    def _to_domain(row: DecisionModel) -> Decision:
        return Decision(
            submission_id=row.submission_id,
            status=DecisionStatus(row.decision_status),
            notes=row.notes,
            decided_at=row.decided_at,
            decided_by=row.decided_by,
        )
