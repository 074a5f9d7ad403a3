"""Application ports (interfaces) used by the application layer."""

from .clock import Clock, SystemClock
from .decision_port import DecisionPort
from .mail_transport_port import MailTransportPort
from .review_port import ReviewPort
from .scheduled_email_port import ScheduledEmailPort
from .submission_port import SubmissionPort

__all__ = [
    "Clock",
    "DecisionPort",
    "MailTransportPort",
    "ReviewPort",
    "ScheduledEmailPort",
    "SubmissionPort",
    "SystemClock",
]
