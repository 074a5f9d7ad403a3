from .decision_store import DecisionStore
from .review_store import ReviewStore
from .scheduled_email_store import ScheduledEmailStore
from .submission_store import SubmissionStore

__all__ = ["DecisionStore", "ReviewStore", "ScheduledEmailStore", "SubmissionStore"]
