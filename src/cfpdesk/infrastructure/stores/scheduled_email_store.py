from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.domain.errors import ConflictError
from cfpdesk.domain.scheduled_email import (
    AcceptanceContent,
    Coupon,
    EmailType,
    Feedback,
    RejectionContent,
    ScheduledEmail,
    ScheduledEmailStatus,
)
from cfpdesk.infrastructure.stores.models import Base, ScheduledEmailModel
from cfpdesk.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url
from cfpdesk.utils.logging_config import LogFiles, Logger

# Columns a transition may write; anything else in ``values`` is a caller bug.
_TRANSITION_COLUMNS = frozenset(
    {
        "sent_at",
        "cancelled_at",
        "cancelled_by",
        "failed_at",
        "failure_reason",
        "provider_message_id",
        "claim_id",
        "claimed_at",
    }
)


class ScheduledEmailStore:
    """
    Scheduled decision emails.

    Rows are never deleted. Every transition out of ``pending`` is a single conditional
    UPDATE; a row count of zero means another caller got there first.
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

    def insert_pending(self, email: ScheduledEmail) -> ScheduledEmail:
        existing = self.find_pending(email.submission_id, email.email_type)
        if existing is not None:
            raise self._conflict(existing)

        now = self._clock.now()
        row = ScheduledEmailModel(
            id=email.id,
            submission_id=email.submission_id,
            email_type=email.email_type.value,
            status=ScheduledEmailStatus.PENDING.value,
            scheduled_for=email.scheduled_for,
            recipient_email=email.recipient_email,
            recipient_name=email.recipient_name or "",
            talk_title=email.talk_title or "",
            personal_message=email.personal_message,
            scheduled_by=email.scheduled_by,
            include_feedback=False,
            created_at=email.created_at or now,
            updated_at=now,
        )
        coupon = email.coupon
        if coupon is not None:
            row.coupon_code = coupon.code
            row.coupon_discount_percent = coupon.discount_percent
            row.coupon_validity_days = coupon.validity_days
            row.coupon_expires_at = coupon.expires_at
        feedback = email.feedback
        if feedback is not None:
            row.include_feedback = True
            row.feedback_text = feedback.text

        try:
            with self._provider.session() as session:
                session.add(row)
                session.commit()
                session.refresh(row)
                return self._to_domain(row)
        except IntegrityError:
            # The partial unique index caught a concurrent schedule() for the same type.
            existing = self.find_pending(email.submission_id, email.email_type)
            Logger.warning(
                "Pending email insert lost a race",
                file=LogFiles.DECISIONS,
                submission_id=email.submission_id,
                email_type=email.email_type.value,
            )
            raise self._conflict(existing) from None

    def get(self, email_id: str) -> Optional[ScheduledEmail]:
        with self._provider.session() as session:
            row = session.get(ScheduledEmailModel, email_id)
            return self._to_domain(row) if row else None

    def find_pending(
        self, submission_id: str, email_type: EmailType
    ) -> Optional[ScheduledEmail]:
        with self._provider.session() as session:
            row = session.execute(
                select(ScheduledEmailModel).where(
                    ScheduledEmailModel.submission_id == submission_id,
                    ScheduledEmailModel.email_type == EmailType.parse(email_type).value,
                    ScheduledEmailModel.status == ScheduledEmailStatus.PENDING.value,
                )
            ).scalar_one_or_none()
            return self._to_domain(row) if row else None

    def list_for_submission(self, submission_id: str) -> List[ScheduledEmail]:
        with self._provider.session() as session:
            rows = session.execute(
                select(ScheduledEmailModel)
                .where(ScheduledEmailModel.submission_id == submission_id)
                .order_by(ScheduledEmailModel.created_at.desc(), ScheduledEmailModel.id.desc())
            ).scalars().all()
            return [self._to_domain(r) for r in rows]

    def list_due(self, now: datetime, *, limit: int = 100) -> List[ScheduledEmail]:
        """Unclaimed pending rows whose window has elapsed, oldest first."""
        with self._provider.session() as session:
            rows = session.execute(
                select(ScheduledEmailModel)
                .where(
                    ScheduledEmailModel.status == ScheduledEmailStatus.PENDING.value,
                    ScheduledEmailModel.claim_id.is_(None),
                    ScheduledEmailModel.scheduled_for <= now,
                )
                .order_by(ScheduledEmailModel.scheduled_for.asc(), ScheduledEmailModel.id.asc())
                .limit(max(1, int(limit)))
            ).scalars().all()
            return [self._to_domain(r) for r in rows]

    def list_stale_claims(self, older_than: datetime) -> List[ScheduledEmail]:
        with self._provider.session() as session:
            rows = session.execute(
                select(ScheduledEmailModel).where(
                    ScheduledEmailModel.status == ScheduledEmailStatus.PENDING.value,
                    ScheduledEmailModel.claim_id.is_not(None),
                    ScheduledEmailModel.claimed_at <= older_than,
                )
            ).scalars().all()
            return [self._to_domain(r) for r in rows]

    def claim(self, email_id: str, claim_id: str, now: datetime) -> bool:
        """Mark a pending row as being sent. Only one caller can ever win."""
        with self._provider.session() as session:
            result = session.execute(
                update(ScheduledEmailModel)
                .where(
                    ScheduledEmailModel.id == email_id,
                    ScheduledEmailModel.status == ScheduledEmailStatus.PENDING.value,
                    ScheduledEmailModel.claim_id.is_(None),
                )
                .values(claim_id=claim_id, claimed_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def update_if(
        self,
        email_id: str,
        *,
        expected_status: ScheduledEmailStatus,
        new_status: ScheduledEmailStatus,
        claim_id: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        values = dict(values or {})
        unknown = set(values) - _TRANSITION_COLUMNS
        if unknown:
            raise ValueError(f"Unsupported transition columns: {sorted(unknown)}")

        claim_clause = (
            ScheduledEmailModel.claim_id.is_(None)
            if claim_id is None
            else ScheduledEmailModel.claim_id == claim_id
        )
        values["status"] = new_status.value
        values["updated_at"] = self._clock.now()

        with self._provider.session() as session:
            result = session.execute(
                update(ScheduledEmailModel)
                .where(
                    ScheduledEmailModel.id == email_id,
                    ScheduledEmailModel.status == expected_status.value,
                    claim_clause,
                )
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            session.commit()
            return result.rowcount == 1

    def close(self) -> None:
        self._provider.engine.dispose()

    @staticmethod
    def _conflict(existing: Optional[ScheduledEmail]) -> ConflictError:
        if existing is None:
            return ConflictError("A pending email of this type already exists")
        return ConflictError(
            f"A pending {existing.email_type.value} email already exists for this submission "
            f"(scheduled for {existing.scheduled_for.isoformat()}); cancel it first",
            existing=existing,
        )

    @staticmethod
    def _to_domain(row: ScheduledEmailModel) -> ScheduledEmail:
        if row.email_type == EmailType.REJECTION.value:
            coupon = None
            if row.coupon_code:
                coupon = Coupon(
                    code=row.coupon_code,
                    discount_percent=int(row.coupon_discount_percent or 0),
                    validity_days=int(row.coupon_validity_days or 0),
                    expires_at=row.coupon_expires_at,
                )
            feedback = None
            if row.include_feedback and row.feedback_text:
                feedback = Feedback(text=row.feedback_text)
            content = RejectionContent(
                personal_message=row.personal_message, coupon=coupon, feedback=feedback
            )
        else:
            content = AcceptanceContent(personal_message=row.personal_message)

        return ScheduledEmail(
            id=row.id,
            submission_id=row.submission_id,
            content=content,
            scheduled_for=row.scheduled_for,
            recipient_email=row.recipient_email,
            recipient_name=row.recipient_name or "",
            talk_title=row.talk_title or "",
            status=ScheduledEmailStatus(row.status),
            scheduled_by=row.scheduled_by,
            sent_at=row.sent_at,
            cancelled_at=row.cancelled_at,
            cancelled_by=row.cancelled_by,
            failed_at=row.failed_at,
            failure_reason=row.failure_reason,
            claim_id=row.claim_id,
            claimed_at=row.claimed_at,
            provider_message_id=row.provider_message_id,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
