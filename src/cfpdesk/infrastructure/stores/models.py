from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


class UtcDateTime(TypeDecorator):
    """
    Timezone-aware UTC datetimes on every backend.

    SQLite has no timezone support, so values are stored as naive UTC and re-tagged on
    load; comparisons in WHERE clauses stay consistent because every bound value is
    normalized the same way.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class SpeakerModel(Base):
    __tablename__ = "cfp_speakers"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str] = mapped_column(String(256), index=True)
    first_name: Mapped[str] = mapped_column(String(128), default="")
    last_name: Mapped[str] = mapped_column(String(128), default="")
    created_at: Mapped[datetime] = mapped_column(UtcDateTime)

    submissions = relationship("SubmissionModel", back_populates="speaker")


class SubmissionModel(Base):
    __tablename__ = "cfp_submissions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    speaker_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_speakers.id"), index=True
    )
    title: Mapped[str] = mapped_column(String(512), default="")
    submission_type: Mapped[str] = mapped_column(String(16), default="standard")
    status: Mapped[str] = mapped_column(String(32), default="draft", index=True)

    # duration / participants / compensation for workshops, stored verbatim
    workshop_json: Mapped[str] = mapped_column(Text, default="{}")

    created_at: Mapped[datetime] = mapped_column(UtcDateTime)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime)

    speaker = relationship("SpeakerModel", back_populates="submissions")

    def set_workshop_details(self, data: Dict[str, Any]) -> None:
        self.workshop_json = json.dumps(data or {}, ensure_ascii=False)

    def get_workshop_details(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.workshop_json or "{}")
        except json.JSONDecodeError:
            return {}
        return data if isinstance(data, dict) else {}


class ReviewModel(Base):
    __tablename__ = "cfp_reviews"
    __table_args__ = (
        UniqueConstraint("submission_id", "reviewer_id", name="uq_cfp_reviews_submission_reviewer"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_submissions.id"), index=True
    )
    reviewer_id: Mapped[str] = mapped_column(String(64), index=True)

    score_overall: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    score_relevance: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    score_technical_depth: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    score_clarity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    score_diversity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    private_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    feedback_to_speaker: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime)


class DecisionModel(Base):
    """Current decision; no row means undecided."""

    __tablename__ = "cfp_decisions"

    submission_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_submissions.id"), primary_key=True
    )
    decision_status: Mapped[str] = mapped_column(String(16))
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_at: Mapped[datetime] = mapped_column(UtcDateTime)
    decided_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)


class DecisionEventModel(Base):
    """Append-only decision history."""

    __tablename__ = "cfp_decision_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    submission_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_submissions.id"), index=True
    )
    event_type: Mapped[str] = mapped_column(String(32))
    previous_status: Mapped[str] = mapped_column(String(16))
    new_status: Mapped[str] = mapped_column(String(16))
    admin_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UtcDateTime, index=True)


class SpeakerAttendanceModel(Base):
    """Speaker's confirm/decline answer for an accepted submission."""

    __tablename__ = "cfp_speaker_attendance"
    __table_args__ = (
        UniqueConstraint(
            "speaker_id", "submission_id", name="uq_cfp_speaker_attendance_speaker_submission"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    speaker_id: Mapped[str] = mapped_column(String(64), ForeignKey("cfp_speakers.id"), index=True)
    submission_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_submissions.id"), index=True
    )
    status: Mapped[str] = mapped_column(String(16), default="pending")
    responded_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    decline_reason: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    decline_notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime)


class ScheduledEmailModel(Base):
    __tablename__ = "cfp_scheduled_emails"
    __table_args__ = (
        # at most one pending email per (submission, type)
        Index(
            "uq_cfp_scheduled_emails_pending",
            "submission_id",
            "email_type",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    submission_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("cfp_submissions.id"), index=True
    )
    email_type: Mapped[str] = mapped_column(String(16))
    status: Mapped[str] = mapped_column(String(16), default="pending", index=True)
    scheduled_for: Mapped[datetime] = mapped_column(UtcDateTime, index=True)

    recipient_email: Mapped[str] = mapped_column(String(256))
    recipient_name: Mapped[str] = mapped_column(String(256), default="")
    talk_title: Mapped[str] = mapped_column(String(512), default="")
    personal_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # rejection-only content
    coupon_code: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    coupon_discount_percent: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    coupon_validity_days: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    coupon_expires_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    include_feedback: Mapped[bool] = mapped_column(Boolean, default=False)
    feedback_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    scheduled_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    sent_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    cancelled_by: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)
    failed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    failure_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    claim_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    claimed_at: Mapped[Optional[datetime]] = mapped_column(UtcDateTime, nullable=True)
    provider_message_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UtcDateTime)
    updated_at: Mapped[datetime] = mapped_column(UtcDateTime)
