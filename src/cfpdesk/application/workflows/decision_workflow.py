"""
DecisionWorkflow: the operation surface of the CFP decision & communication flow.

Scoring, pipeline status, the accept/reject decision and speaker emails are separate,
explicit calls. Recording a decision never moves the pipeline status or queues an email;
keeping them in step is up to the caller.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.application.ports.decision_port import DecisionPort
from cfpdesk.application.ports.mail_transport_port import MailTransportPort
from cfpdesk.application.ports.review_port import ReviewPort
from cfpdesk.application.ports.scheduled_email_port import ScheduledEmailPort
from cfpdesk.application.ports.submission_port import SubmissionPort
from cfpdesk.application.services.review_service import ReviewService
from cfpdesk.application.services.scheduled_email_scheduler import (
    DispatchResult,
    ScheduledEmailScheduler,
)
from cfpdesk.application.services.score_aggregator import (
    AggregateScores,
    SubmissionScoring,
    aggregate,
    bucket_counts,
    compute_submission_scoring,
)
from cfpdesk.application.services.status_machine import (
    BulkStatusResult,
    StatusChangeResult,
    SubmissionStatusMachine,
)
from cfpdesk.config.settings import CfpSettings
from cfpdesk.domain.attendance import AttendanceConfirmation, AttendanceResponse
from cfpdesk.domain.decision import Decision, DecisionEvent, DecisionStatus
from cfpdesk.domain.errors import NotFoundError
from cfpdesk.domain.review import Review
from cfpdesk.domain.scheduled_email import EmailType, ScheduledEmail, ScheduleEmailOptions
from cfpdesk.domain.submission import Submission, SubmissionStatus
from cfpdesk.utils.logging_config import LogFiles, Logger

DECLINE_REASONS = ("conflict", "travel", "personal", "other")


class DecisionWorkflow:
    def __init__(
        self,
        *,
        submissions: SubmissionPort,
        reviews: ReviewPort,
        decisions: DecisionPort,
        emails: ScheduledEmailPort,
        transport: MailTransportPort,
        settings: Optional[CfpSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.settings = settings or CfpSettings()
        self.clock = clock or SystemClock()
        self.submissions = submissions
        self.reviews = reviews
        self.decisions = decisions
        self.emails = emails
        self.transport = transport

        self.status_machine = SubmissionStatusMachine(submissions)
        self.review_service = ReviewService(
            reviews,
            submissions,
            decisions,
            lock_after_decision=self.settings.lock_reviews_after_decision,
        )
        self.scheduler = ScheduledEmailScheduler(
            emails,
            submissions,
            transport,
            settings=self.settings,
            clock=self.clock,
            template_context=self._template_context,
        )

    # ── scoring ─────────────────────────────────────────────────

    def aggregate_scores(self, submission_id: str) -> Optional[AggregateScores]:
        self._require_submission(submission_id)
        return aggregate(self.reviews.list_reviews(submission_id))

    def submission_scoring(
        self, submission_id: str, total_reviewers: Optional[int] = None
    ) -> SubmissionScoring:
        self._require_submission(submission_id)
        if total_reviewers is None:
            total_reviewers = self.reviews.count_reviewers()
        return compute_submission_scoring(self.reviews.list_reviews(submission_id), total_reviewers)

    def insights(self, total_reviewers: Optional[int] = None) -> Dict[str, Any]:
        """Committee overview: score/coverage/shortlist histograms and pipeline counts."""
        if total_reviewers is None:
            total_reviewers = self.reviews.count_reviewers()
        submissions = self.submissions.list_submissions(
            limit=max(1, self.submissions.count_submissions())
        )
        scorings = [
            compute_submission_scoring(self.reviews.list_reviews(s.id), total_reviewers)
            for s in submissions
        ]
        return {
            "total_submissions": len(submissions),
            "total_reviewers": total_reviewers,
            "buckets": bucket_counts(scorings),
            "pipeline_status": self.submissions.count_by_status(),
        }

    def submit_review(
        self,
        submission_id: str,
        reviewer_id: str,
        *,
        scores: Optional[Dict[str, Any]] = None,
        private_notes: Optional[str] = None,
        feedback_to_speaker: Optional[str] = None,
    ) -> Review:
        return self.review_service.submit_review(
            submission_id,
            reviewer_id,
            scores=scores,
            private_notes=private_notes,
            feedback_to_speaker=feedback_to_speaker,
        )

    # ── pipeline status ─────────────────────────────────────────

    def set_status(self, submission_id: str, status: Any) -> StatusChangeResult:
        return self.status_machine.set_status(submission_id, status)

    def bulk_set_status(self, submission_ids: Iterable[str], status: Any) -> BulkStatusResult:
        return self.status_machine.bulk_set_status(submission_ids, status)

    # ── decision ────────────────────────────────────────────────

    def decide(
        self,
        submission_id: str,
        decision: Any,
        notes: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> Decision:
        result = self.decisions.decide(
            submission_id,
            DecisionStatus.parse_final(decision),
            notes=notes,
            decided_by=decided_by,
        )
        Logger.info(
            "Decision recorded",
            file=LogFiles.DECISIONS,
            submission_id=submission_id,
            decision=result.status.value,
            decided_by=decided_by,
        )
        return result

    def get_decision(self, submission_id: str) -> Decision:
        self._require_submission(submission_id)
        return self.decisions.get_decision(submission_id)

    def decision_history(self, submission_id: str) -> List[DecisionEvent]:
        self._require_submission(submission_id)
        return self.decisions.list_events(submission_id)

    def get_decision_and_emails(self, submission_id: str) -> Dict[str, Any]:
        self._require_submission(submission_id)
        return {
            "status": self.decisions.get_decision(submission_id),
            "scheduled_emails": self.emails.list_for_submission(submission_id),
        }

    # ── attendance ──────────────────────────────────────────────

    def get_attendance(self, submission_id: str) -> Optional[AttendanceConfirmation]:
        self._require_submission(submission_id)
        return self.submissions.get_attendance(submission_id)

    def respond_attendance(
        self,
        submission_id: str,
        response: Any,
        *,
        decline_reason: Optional[str] = None,
        decline_notes: Optional[str] = None,
    ) -> AttendanceConfirmation:
        """Record the speaker's confirm/decline for an accepted submission."""
        answer = AttendanceResponse.parse(response)
        submission = self._require_submission(submission_id)
        if submission.status != SubmissionStatus.ACCEPTED:
            raise ValueError("Only accepted submissions can have attendance confirmed")

        reason = notes = None
        if answer == AttendanceResponse.DECLINE:
            reason = (decline_reason or "").strip().lower() or None
            if reason is not None and reason not in DECLINE_REASONS:
                raise ValueError(f"decline_reason must be one of: {', '.join(DECLINE_REASONS)}")
            notes = (decline_notes or "").strip() or None

        result = self.submissions.record_attendance(
            submission_id, answer.status, decline_reason=reason, decline_notes=notes
        )
        Logger.info(
            "Attendance response recorded",
            file=LogFiles.DECISIONS,
            submission_id=submission_id,
            speaker_id=result.speaker_id,
            status=result.status.value,
        )
        return result

    # ── emails ──────────────────────────────────────────────────

    def schedule_email(
        self,
        submission_id: str,
        email_type: Any,
        options: Optional[ScheduleEmailOptions] = None,
        *,
        scheduled_by: Optional[str] = None,
    ) -> ScheduledEmail:
        return self.scheduler.schedule(submission_id, email_type, options, scheduled_by=scheduled_by)

    def cancel_scheduled_email(
        self, email_id: str, *, cancelled_by: Optional[str] = None
    ) -> ScheduledEmail:
        return self.scheduler.cancel(email_id, cancelled_by=cancelled_by)

    def send_now(self, email_id: str) -> ScheduledEmail:
        return self.scheduler.send_now(email_id)

    def mark_email_failed(self, email_id: str, reason: str) -> ScheduledEmail:
        return self.scheduler.mark_failed(email_id, reason)

    def tick_dispatch_worker(self, now: Optional[datetime] = None) -> DispatchResult:
        return self.scheduler.tick(now)

    def time_remaining(self, email_id: str) -> int:
        return self.scheduler.time_remaining(self.scheduler.get(email_id))

    # ── helpers ─────────────────────────────────────────────────

    def _require_submission(self, submission_id: str) -> Submission:
        submission = self.submissions.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("submission", submission_id)
        return submission

    def _template_context(self, email: ScheduledEmail) -> Dict[str, Any]:
        """Selection context for rejection emails, computed at send time."""
        if email.email_type != EmailType.REJECTION:
            return {}

        submission = self.submissions.get_submission(email.submission_id)
        other_pending = False
        if submission is not None:
            for other in self.submissions.list_for_speaker(submission.speaker_id):
                if other.id == submission.id:
                    continue
                if not self.decisions.get_decision(other.id).is_decided:
                    other_pending = True
                    break

        settings = self.settings
        return {
            "total_submissions": self.submissions.count_submissions(),
            "total_reviews": self.reviews.count_reviews(),
            "talks_total": settings.talks_total or None,
            "talks_from_cfp": settings.talks_from_cfp or None,
            "workshop_slots_min": settings.workshop_slots_min or None,
            "workshop_slots_max": settings.workshop_slots_max or None,
            "has_other_pending_submissions": other_pending,
        }


def build_default_workflow(
    settings: Optional[CfpSettings] = None,
    *,
    transport: Optional[MailTransportPort] = None,
    clock: Optional[Clock] = None,
) -> DecisionWorkflow:
    """Wire SQLAlchemy stores and the Resend transport from the environment."""
    from cfpdesk.infrastructure.services.resend_transport import (
        NullMailTransport,
        ResendMailTransport,
    )
    from cfpdesk.infrastructure.stores.decision_store import DecisionStore
    from cfpdesk.infrastructure.stores.review_store import ReviewStore
    from cfpdesk.infrastructure.stores.scheduled_email_store import ScheduledEmailStore
    from cfpdesk.infrastructure.stores.submission_store import SubmissionStore

    settings = settings or CfpSettings.from_env()
    clock = clock or SystemClock()
    if transport is None:
        transport = ResendMailTransport.from_env(
            timeout=settings.transport_timeout_seconds
        ) or NullMailTransport()

    return DecisionWorkflow(
        submissions=SubmissionStore(settings.db_url, clock=clock),
        reviews=ReviewStore(settings.db_url, clock=clock),
        decisions=DecisionStore(settings.db_url, clock=clock),
        emails=ScheduledEmailStore(settings.db_url, clock=clock),
        transport=transport,
        settings=settings,
        clock=clock,
    )
