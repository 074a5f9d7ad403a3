"""Domain models for the submission decision & communication workflow."""

from .decision import Decision, DecisionEvent, DecisionEventType, DecisionStatus
from .errors import (
    AlreadyResolvedError,
    CfpError,
    ConflictError,
    NotCancellableError,
    NotFoundError,
    ReviewLockedError,
    TransportError,
)
from .review import SCORE_DIMENSIONS, Review
from .scheduled_email import (
    AcceptanceContent,
    Coupon,
    EmailType,
    Feedback,
    RejectionContent,
    ScheduledEmail,
    ScheduledEmailStatus,
    ScheduleEmailOptions,
)
from .submission import Speaker, Submission, SubmissionStatus, SubmissionType

__all__ = [
    "AcceptanceContent",
    "AlreadyResolvedError",
    "CfpError",
    "ConflictError",
    "Coupon",
    "Decision",
    "DecisionEvent",
    "DecisionEventType",
    "DecisionStatus",
    "EmailType",
    "Feedback",
    "NotCancellableError",
    "NotFoundError",
    "RejectionContent",
    "Review",
    "ReviewLockedError",
    "SCORE_DIMENSIONS",
    "ScheduleEmailOptions",
    "ScheduledEmail",
    "ScheduledEmailStatus",
    "Speaker",
    "Submission",
    "SubmissionStatus",
    "SubmissionType",
    "TransportError",
]
