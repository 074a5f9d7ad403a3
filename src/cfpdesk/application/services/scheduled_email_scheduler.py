"""
Delayed, cancellable decision emails.

Every scheduled email waits ``EMAIL_DELAY`` before the dispatch worker may send it, which
gives the committee a fixed window to cancel. The same send path is used by the worker
tick and by ``send_now``:

    build template data -> claim row -> transport.send -> mark sent / failed

Claiming is a conditional update, so when an operator and the worker race on one row
exactly one of them reaches the transport; the other sees ``AlreadyResolvedError``.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional
from uuid import uuid4

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.application.ports.mail_transport_port import MailTransportPort
from cfpdesk.application.ports.scheduled_email_port import ScheduledEmailPort
from cfpdesk.application.ports.submission_port import SubmissionPort
from cfpdesk.application.services.coupon import build_coupon
from cfpdesk.config.settings import CfpSettings
from cfpdesk.domain.errors import (
    AlreadyResolvedError,
    NotCancellableError,
    NotFoundError,
    TransportError,
)
from cfpdesk.domain.scheduled_email import (
    AcceptanceContent,
    EmailContent,
    EmailType,
    Feedback,
    RejectionContent,
    ScheduledEmail,
    ScheduledEmailStatus,
    ScheduleEmailOptions,
)
from cfpdesk.utils.logging_config import LogFiles, Logger

EMAIL_DELAY = timedelta(minutes=30)
STALE_CLAIM_REASON = "send attempt did not complete"
LATE_DELIVERY_REASON = "delivered after the send claim expired"

TemplateContext = Callable[[ScheduledEmail], Dict[str, Any]]


def get_time_remaining(scheduled_for: datetime, now: datetime) -> int:
    """Whole minutes until ``scheduled_for``, rounded up and never negative."""
    seconds = (scheduled_for - now).total_seconds()
    return max(0, math.ceil(seconds / 60))


def format_time_remaining(minutes: int) -> str:
    if minutes <= 0:
        return "Sending now..."
    if minutes == 1:
        return "1 minute"
    return f"{minutes} minutes"


@dataclass
class DispatchResult:
    sent: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, List[str]]:
        return {"sent": list(self.sent), "failed": list(self.failed), "skipped": list(self.skipped)}


class ScheduledEmailScheduler:
    def __init__(
        self,
        emails: ScheduledEmailPort,
        submissions: SubmissionPort,
        transport: MailTransportPort,
        *,
        settings: Optional[CfpSettings] = None,
        clock: Optional[Clock] = None,
        template_context: Optional[TemplateContext] = None,
    ):
        self._emails = emails
        self._submissions = submissions
        self._transport = transport
        self._settings = settings or CfpSettings()
        self._clock = clock or SystemClock()
        self._template_context = template_context

    # ── scheduling ──────────────────────────────────────────────

    def schedule(
        self,
        submission_id: str,
        email_type: Any,
        options: Optional[ScheduleEmailOptions] = None,
        *,
        scheduled_by: Optional[str] = None,
    ) -> ScheduledEmail:
        """
        Queue a decision email ``EMAIL_DELAY`` from now.

        Does not look at the recorded decision; callers pick the matching type. Raises
        ConflictError when an email of the same type is already pending.
        """
        kind = EmailType.parse(email_type)
        options = options or ScheduleEmailOptions()
        if kind == EmailType.ACCEPTANCE and options.has_rejection_extras:
            raise ValueError("Coupons and feedback can only be attached to rejection emails")
        if options.include_feedback and not (options.feedback_text or "").strip():
            raise ValueError("feedback_text is required when include_feedback is set")

        submission = self._submissions.get_submission(submission_id)
        if submission is None:
            raise NotFoundError("submission", submission_id)
        speaker = submission.speaker
        if speaker is None:
            raise NotFoundError("speaker", submission.speaker_id)

        now = self._clock.now()
        email = ScheduledEmail(
            id=uuid4().hex,
            submission_id=submission_id,
            content=self._build_content(kind, options, now),
            scheduled_for=now + EMAIL_DELAY,
            recipient_email=speaker.email,
            recipient_name=speaker.display_name,
            talk_title=submission.title,
            scheduled_by=scheduled_by,
            created_at=now,
        )
        stored = self._emails.insert_pending(email)
        if kind == EmailType.ACCEPTANCE:
            # the acceptance email links to this confirmation on the speaker dashboard
            self._submissions.ensure_attendance(submission_id)

        coupon = stored.coupon
        Logger.info(
            "Decision email scheduled",
            file=LogFiles.DECISIONS,
            email_id=stored.id,
            submission_id=submission_id,
            email_type=kind.value,
            scheduled_for=stored.scheduled_for.isoformat(),
            coupon=coupon.code if coupon else None,
        )
        return stored

    def _build_content(
        self, kind: EmailType, options: ScheduleEmailOptions, now: datetime
    ) -> EmailContent:
        message = (options.personal_message or "").strip() or None
        if kind == EmailType.ACCEPTANCE:
            return AcceptanceContent(personal_message=message)

        coupon = build_coupon(
            self._settings.coupon,
            now=now,
            discount_percent=options.coupon_discount_percent,
            validity_days=options.coupon_validity_days,
        )
        feedback = None
        if options.include_feedback:
            feedback = Feedback(text=options.feedback_text.strip())
        return RejectionContent(personal_message=message, coupon=coupon, feedback=feedback)

    # ── resolving a pending row ─────────────────────────────────

    def cancel(self, email_id: str, *, cancelled_by: Optional[str] = None) -> ScheduledEmail:
        """Cancel an unsent email. Not idempotent: a second cancel raises."""
        email = self._require(email_id)
        if not email.is_pending:
            raise NotCancellableError(
                f"Cannot cancel email with status: {email.status.value}", status=email.status.value
            )
        if email.is_sending:
            raise AlreadyResolvedError("Too late to cancel: the email is being sent", status="sending")

        ok = self._emails.update_if(
            email_id,
            expected_status=ScheduledEmailStatus.PENDING,
            new_status=ScheduledEmailStatus.CANCELLED,
            values={"cancelled_at": self._clock.now(), "cancelled_by": cancelled_by},
        )
        if not ok:
            raise self._too_late(email_id, "cancel")

        Logger.info(
            "Scheduled email cancelled",
            file=LogFiles.DECISIONS,
            email_id=email_id,
            submission_id=email.submission_id,
            email_type=email.email_type.value,
            cancelled_by=cancelled_by,
        )
        return self._require(email_id)

    def send_now(self, email_id: str) -> ScheduledEmail:
        """
        Send a pending email immediately, skipping the rest of its window.

        Raises AlreadyResolvedError if the row is no longer pending (or another caller
        is sending it) and TransportError after marking the row failed.
        """
        email = self._require(email_id)
        if not email.is_pending or email.is_sending:
            raise self._too_late(email_id, "send")
        return self._deliver(email)

    def mark_failed(self, email_id: str, reason: str) -> ScheduledEmail:
        """Manually give up on a pending email that has not started sending."""
        reason = (reason or "").strip()
        if not reason:
            raise ValueError("A failure reason is required")
        email = self._require(email_id)
        if not email.is_pending:
            raise NotCancellableError(
                f"Cannot fail email with status: {email.status.value}", status=email.status.value
            )

        ok = self._emails.update_if(
            email_id,
            expected_status=ScheduledEmailStatus.PENDING,
            new_status=ScheduledEmailStatus.FAILED,
            values={"failed_at": self._clock.now(), "failure_reason": reason},
        )
        if not ok:
            raise self._too_late(email_id, "fail")
        Logger.warning(
            "Scheduled email marked failed", file=LogFiles.DISPATCH, email_id=email_id, reason=reason
        )
        return self._require(email_id)

    def tick(self, now: Optional[datetime] = None) -> DispatchResult:
        """One dispatch pass: fail stale claims, then send everything that is due."""
        now = now or self._clock.now()
        result = DispatchResult()

        for stale in self._emails.list_stale_claims(now - timedelta(minutes=self._settings.claim_ttl_minutes)):
            failed = self._emails.update_if(
                stale.id,
                expected_status=ScheduledEmailStatus.PENDING,
                new_status=ScheduledEmailStatus.FAILED,
                claim_id=stale.claim_id,
                values={"failed_at": now, "failure_reason": STALE_CLAIM_REASON},
            )
            if failed:
                result.failed.append(stale.id)
                Logger.error(
                    "Stale send claim failed",
                    file=LogFiles.DISPATCH,
                    email_id=stale.id,
                    claimed_at=stale.claimed_at.isoformat() if stale.claimed_at else None,
                )

        for email in self._emails.list_due(now, limit=self._settings.dispatch_batch_size):
            try:
                self._deliver(email)
            except AlreadyResolvedError:
                result.skipped.append(email.id)
            except TransportError:
                result.failed.append(email.id)
            else:
                result.sent.append(email.id)

        if result.sent or result.failed or result.skipped:
            Logger.info(
                "Dispatch tick finished",
                file=LogFiles.DISPATCH,
                sent=len(result.sent),
                failed=len(result.failed),
                skipped=len(result.skipped),
            )
        return result

    def _deliver(self, email: ScheduledEmail) -> ScheduledEmail:
        data = self.build_template_data(email)

        claim_id = uuid4().hex
        if not self._emails.claim(email.id, claim_id, self._clock.now()):
            raise self._too_late(email.id, "send")

        try:
            message_id = self._transport.send(email.recipient_email, email.email_type.value, data)
        except Exception as exc:
            self._emails.update_if(
                email.id,
                expected_status=ScheduledEmailStatus.PENDING,
                new_status=ScheduledEmailStatus.FAILED,
                claim_id=claim_id,
                values={"failed_at": self._clock.now(), "failure_reason": str(exc) or type(exc).__name__},
            )
            Logger.error(
                "Decision email send failed",
                file=LogFiles.DISPATCH,
                email_id=email.id,
                submission_id=email.submission_id,
                error=str(exc),
            )
            if isinstance(exc, TransportError):
                raise
            raise TransportError(f"Send failed: {exc}") from exc

        recorded = self._emails.update_if(
            email.id,
            expected_status=ScheduledEmailStatus.PENDING,
            new_status=ScheduledEmailStatus.SENT,
            claim_id=claim_id,
            values={"sent_at": self._clock.now(), "provider_message_id": message_id},
        )
        if not recorded:
            # Reaped as stale while the transport was busy; keep the provider id on the
            # failed row so the audit trail shows the message did go out.
            self._emails.update_if(
                email.id,
                expected_status=ScheduledEmailStatus.FAILED,
                new_status=ScheduledEmailStatus.FAILED,
                claim_id=claim_id,
                values={"provider_message_id": message_id, "failure_reason": LATE_DELIVERY_REASON},
            )
            Logger.error(
                "Email delivered after its claim expired",
                file=LogFiles.DISPATCH,
                email_id=email.id,
                message_id=message_id,
            )
            raise self._too_late(email.id, "record send")

        Logger.info(
            "Decision email sent",
            file=LogFiles.DISPATCH,
            email_id=email.id,
            submission_id=email.submission_id,
            email_type=email.email_type.value,
            message_id=message_id,
        )
        return self._require(email.id)

    # ── template data ───────────────────────────────────────────

    def build_template_data(self, email: ScheduledEmail) -> Dict[str, Any]:
        settings = self._settings
        name = email.recipient_name or email.recipient_email
        data: Dict[str, Any] = {
            "to": email.recipient_email,
            "speaker_name": name,
            "first_name": name.split(" ")[0] if name else "there",
            "talk_title": email.talk_title,
            "conference_name": settings.conference_name,
            "personal_message": email.personal_message,
        }
        if email.email_type == EmailType.ACCEPTANCE:
            data["conference_date"] = settings.conference_date
            data["confirmation_url"] = f"{settings.public_base_url}/cfp/dashboard"
        else:
            coupon = email.coupon
            feedback = email.feedback
            data.update(
                {
                    "coupon_code": coupon.code if coupon else None,
                    "coupon_discount_percent": coupon.discount_percent if coupon else None,
                    "coupon_expires_at": (
                        coupon.expires_at.isoformat() if coupon and coupon.expires_at else None
                    ),
                    "tickets_url": f"{settings.public_base_url}/#tickets",
                    "include_feedback": feedback is not None,
                    "feedback_text": feedback.text if feedback else None,
                }
            )
        if self._template_context is not None:
            data.update(self._template_context(email))
        return data

    # ── reads ───────────────────────────────────────────────────

    def get(self, email_id: str) -> ScheduledEmail:
        return self._require(email_id)

    def list_for_submission(self, submission_id: str) -> List[ScheduledEmail]:
        return self._emails.list_for_submission(submission_id)

    def history(self, submission_id: str) -> List[ScheduledEmail]:
        """Resolved rows only: what was communicated (or not) and when."""
        return [e for e in self._emails.list_for_submission(submission_id) if not e.is_pending]

    def time_remaining(self, email: ScheduledEmail) -> int:
        if not email.is_pending:
            return 0
        return get_time_remaining(email.scheduled_for, self._clock.now())

    def _require(self, email_id: str) -> ScheduledEmail:
        email = self._emails.get(email_id)
        if email is None:
            raise NotFoundError("scheduled_email", email_id)
        return email

    def _too_late(self, email_id: str, action: str) -> AlreadyResolvedError:
        current = self._emails.get(email_id)
        if current is None:
            return AlreadyResolvedError(f"Cannot {action}: scheduled email no longer exists")
        state = "sending" if current.is_sending else current.status.value
        return AlreadyResolvedError(
            f"Too late to {action}: email is already {state}", status=state
        )
