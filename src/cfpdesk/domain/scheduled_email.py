# src/cfpdesk/domain/scheduled_email.py
"""
Scheduled decision email domain models.

A scheduled email is a delayed, cancellable notification to a speaker. Its content is a
tagged variant: acceptance emails carry only a personal message, rejection emails may
also carry a coupon and committee feedback.

    pending ──(timer / send_now)──► sent
       │ └──(transport error)─────► failed
       └──(cancel)────────────────► cancelled
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Literal, Optional, Union


class EmailType(str, Enum):
    ACCEPTANCE = "acceptance"
    REJECTION = "rejection"

    @classmethod
    def parse(cls, value: Any) -> "EmailType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise ValueError(f"Email type must be 'acceptance' or 'rejection', got '{value}'")


class ScheduledEmailStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self != ScheduledEmailStatus.PENDING


@dataclass(frozen=True)
class Coupon:
    code: str
    discount_percent: int
    validity_days: int
    expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class Feedback:
    text: str


@dataclass(frozen=True)
class AcceptanceContent:
    kind: Literal["acceptance"] = "acceptance"
    personal_message: Optional[str] = None


@dataclass(frozen=True)
class RejectionContent:
    kind: Literal["rejection"] = "rejection"
    personal_message: Optional[str] = None
    coupon: Optional[Coupon] = None
    feedback: Optional[Feedback] = None


EmailContent = Union[AcceptanceContent, RejectionContent]


@dataclass
class ScheduleEmailOptions:
    """Caller-provided options for schedule(). Coupon/feedback apply to rejections only."""

    personal_message: Optional[str] = None
    coupon_discount_percent: Optional[int] = None
    coupon_validity_days: Optional[int] = None
    include_feedback: bool = False
    feedback_text: Optional[str] = None

    @property
    def has_rejection_extras(self) -> bool:
        return bool(
            self.coupon_discount_percent
            or self.coupon_validity_days
            or self.include_feedback
            or (self.feedback_text or "").strip()
        )


@dataclass
class ScheduledEmail:
    id: str
    submission_id: str
    content: EmailContent
    scheduled_for: datetime
    recipient_email: str
    recipient_name: str = ""
    talk_title: str = ""
    status: ScheduledEmailStatus = ScheduledEmailStatus.PENDING
    scheduled_by: Optional[str] = None
    sent_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    claim_id: Optional[str] = None
    claimed_at: Optional[datetime] = None
    provider_message_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def email_type(self) -> EmailType:
        return EmailType(self.content.kind)

    @property
    def is_pending(self) -> bool:
        return self.status == ScheduledEmailStatus.PENDING

    @property
    def is_sending(self) -> bool:
        """A send attempt has claimed the row; it can no longer be cancelled."""
        return self.is_pending and self.claim_id is not None

    @property
    def personal_message(self) -> Optional[str]:
        return self.content.personal_message

    @property
    def coupon(self) -> Optional[Coupon]:
        return self.content.coupon if isinstance(self.content, RejectionContent) else None

    @property
    def feedback(self) -> Optional[Feedback]:
        return self.content.feedback if isinstance(self.content, RejectionContent) else None

    def to_dict(self) -> Dict[str, Any]:
        coupon = self.coupon
        feedback = self.feedback
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "email_type": self.email_type.value,
            "status": self.status.value,
            "scheduled_for": _iso(self.scheduled_for),
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "talk_title": self.talk_title,
            "personal_message": self.personal_message,
            "coupon_code": coupon.code if coupon else None,
            "coupon_discount_percent": coupon.discount_percent if coupon else None,
            "coupon_validity_days": coupon.validity_days if coupon else None,
            "coupon_expires_at": _iso(coupon.expires_at) if coupon else None,
            "include_feedback": feedback is not None,
            "feedback_text": feedback.text if feedback else None,
            "scheduled_by": self.scheduled_by,
            "sent_at": _iso(self.sent_at),
            "cancelled_at": _iso(self.cancelled_at),
            "cancelled_by": self.cancelled_by,
            "failed_at": _iso(self.failed_at),
            "failure_reason": self.failure_reason,
            "sending": self.is_sending,
            "provider_message_id": self.provider_message_id,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None
