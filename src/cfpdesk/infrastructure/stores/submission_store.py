from __future__ import annotations

from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import selectinload

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.domain.attendance import AttendanceConfirmation, AttendanceStatus
from cfpdesk.domain.errors import NotFoundError
from cfpdesk.domain.submission import Speaker, Submission, SubmissionStatus, SubmissionType
from cfpdesk.infrastructure.stores.models import (
    Base,
    SpeakerAttendanceModel,
    SpeakerModel,
    SubmissionModel,
)
from cfpdesk.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


class SubmissionStore:
    """CRUD for speakers and submissions; status writes are unconditional."""

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

    def create_speaker(
        self, *, email: str, first_name: str = "", last_name: str = ""
    ) -> Speaker:
        email = (email or "").strip().lower()
        if not email:
            raise ValueError("Speaker email is required")
        row = SpeakerModel(
            id=uuid4().hex,
            email=email,
            first_name=(first_name or "").strip(),
            last_name=(last_name or "").strip(),
            created_at=self._clock.now(),
        )
        with self._provider.session() as session:
            session.add(row)
            session.commit()
            return self._speaker_to_domain(row)

    def get_speaker(self, speaker_id: str) -> Optional[Speaker]:
        with self._provider.session() as session:
            row = session.get(SpeakerModel, speaker_id)
            return self._speaker_to_domain(row) if row else None

    def create_submission(
        self,
        *,
        speaker_id: str,
        title: str,
        submission_type: str = SubmissionType.STANDARD.value,
        workshop_details: Optional[Dict[str, Any]] = None,
    ) -> Submission:
        kind = SubmissionType(str(submission_type).strip().lower())
        now = self._clock.now()
        with self._provider.session() as session:
            speaker = session.get(SpeakerModel, speaker_id)
            if speaker is None:
                raise NotFoundError("speaker", speaker_id)

            row = SubmissionModel(
                id=uuid4().hex,
                speaker_id=speaker_id,
                title=(title or "").strip(),
                submission_type=kind.value,
                status=SubmissionStatus.DRAFT.value,
                created_at=now,
                updated_at=now,
            )
            row.set_workshop_details(workshop_details if kind == SubmissionType.WORKSHOP else {})
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_domain(row, speaker)

    def get_submission(self, submission_id: str) -> Optional[Submission]:
        with self._provider.session() as session:
            row = session.execute(
                select(SubmissionModel)
                .options(selectinload(SubmissionModel.speaker))
                .where(SubmissionModel.id == submission_id)
            ).scalar_one_or_none()
            return self._to_domain(row, row.speaker) if row else None

    def update_status(
        self, submission_id: str, status: SubmissionStatus
    ) -> Optional[Submission]:
        with self._provider.session() as session:
            row = session.execute(
                select(SubmissionModel)
                .options(selectinload(SubmissionModel.speaker))
                .where(SubmissionModel.id == submission_id)
            ).scalar_one_or_none()
            if row is None:
                return None
            if row.status != status.value:
                row.status = status.value
                row.updated_at = self._clock.now()
                session.commit()
            return self._to_domain(row, row.speaker)

    def list_submissions(
        self, *, status: Optional[SubmissionStatus] = None, limit: int = 200
    ) -> List[Submission]:
        stmt = (
            select(SubmissionModel)
            .options(selectinload(SubmissionModel.speaker))
            .order_by(SubmissionModel.created_at.asc())
            .limit(max(1, int(limit)))
        )
        if status is not None:
            stmt = stmt.where(SubmissionModel.status == status.value)
        with self._provider.session() as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_domain(r, r.speaker) for r in rows]

    def list_for_speaker(self, speaker_id: str) -> List[Submission]:
        with self._provider.session() as session:
            rows = session.execute(
                select(SubmissionModel)
                .options(selectinload(SubmissionModel.speaker))
                .where(SubmissionModel.speaker_id == speaker_id)
                .order_by(SubmissionModel.created_at.asc())
            ).scalars().all()
            return [self._to_domain(r, r.speaker) for r in rows]

    def count_submissions(self) -> int:
        with self._provider.session() as session:
            return int(session.execute(select(func.count(SubmissionModel.id))).scalar_one() or 0)

    def count_by_status(self) -> Dict[str, int]:
        with self._provider.session() as session:
            rows = session.execute(
                select(SubmissionModel.status, func.count()).group_by(SubmissionModel.status)
            ).all()
        counts = {s.value: 0 for s in SubmissionStatus}
        for status, count in rows:
            counts[status] = int(count)
        return counts

    # ── attendance confirmation ─────────────────────────────────

    def ensure_attendance(self, submission_id: str) -> AttendanceConfirmation:
        """Open a pending confirmation; an existing answer is left untouched."""
        with self._provider.session() as session:
            submission = session.get(SubmissionModel, submission_id)
            if submission is None:
                raise NotFoundError("submission", submission_id)
            row = self._attendance_row(session, submission_id)
            if row is None:
                now = self._clock.now()
                row = SpeakerAttendanceModel(
                    speaker_id=submission.speaker_id,
                    submission_id=submission_id,
                    status=AttendanceStatus.PENDING.value,
                    created_at=now,
                    updated_at=now,
                )
                session.add(row)
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    row = self._attendance_row(session, submission_id)
            return self._attendance_to_domain(row)

    def get_attendance(self, submission_id: str) -> Optional[AttendanceConfirmation]:
        with self._provider.session() as session:
            row = self._attendance_row(session, submission_id)
            return self._attendance_to_domain(row) if row else None

    def record_attendance(
        self,
        submission_id: str,
        status: AttendanceStatus,
        *,
        decline_reason: Optional[str] = None,
        decline_notes: Optional[str] = None,
    ) -> AttendanceConfirmation:
        now = self._clock.now()
        with self._provider.session() as session:
            submission = session.get(SubmissionModel, submission_id)
            if submission is None:
                raise NotFoundError("submission", submission_id)
            row = self._attendance_row(session, submission_id)
            if row is None:
                row = SpeakerAttendanceModel(
                    speaker_id=submission.speaker_id, submission_id=submission_id, created_at=now
                )
                session.add(row)
            row.status = status.value
            row.responded_at = now
            row.decline_reason = decline_reason
            row.decline_notes = decline_notes
            row.updated_at = now
            session.commit()
            return self._attendance_to_domain(row)

    @staticmethod
    def _attendance_row(session, submission_id: str) -> Optional[SpeakerAttendanceModel]:
        return session.execute(
            select(SpeakerAttendanceModel).where(SpeakerAttendanceModel.submission_id == submission_id)
        ).scalar_one_or_none()

    @staticmethod
    def _attendance_to_domain(row: SpeakerAttendanceModel) -> AttendanceConfirmation:
        return AttendanceConfirmation(
            submission_id=row.submission_id,
            speaker_id=row.speaker_id,
            status=AttendanceStatus(row.status),
            responded_at=row.responded_at,
            decline_reason=row.decline_reason,
            decline_notes=row.decline_notes,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )

    def close(self) -> None:
        self._provider.engine.dispose()

    @staticmethod
    def _speaker_to_domain(row: SpeakerModel) -> Speaker:
        return Speaker(
            id=row.id,
            email=row.email,
            first_name=row.first_name or "",
            last_name=row.last_name or "",
        )

    @classmethod
    def _to_domain(cls, row: SubmissionModel, speaker: Optional[SpeakerModel]) -> Submission:
        return Submission(
            id=row.id,
            title=row.title,
            speaker_id=row.speaker_id,
            submission_type=SubmissionType(row.submission_type),
            status=SubmissionStatus(row.status),
            workshop_details=row.get_workshop_details(),
            speaker=cls._speaker_to_domain(speaker) if speaker else None,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
