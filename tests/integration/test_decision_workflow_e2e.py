"""End-to-end runs of the decision & communication flow against a SQLite database."""

from datetime import timedelta

from cfpdesk.domain.decision import DecisionStatus
from cfpdesk.domain.scheduled_email import ScheduledEmailStatus, ScheduleEmailOptions
from cfpdesk.domain.submission import SubmissionStatus


def test_schedule_cancel_reschedule(workflow, submission, clock):
    workflow.decide(submission.id, "rejected")
    email = workflow.schedule_email(
        submission.id,
        "rejection",
        ScheduleEmailOptions(coupon_discount_percent=20, coupon_validity_days=14),
    )
    assert email.coupon.discount_percent == 20
    assert email.coupon.validity_days == 14

    workflow.cancel_scheduled_email(email.id)

    state = workflow.get_decision_and_emails(submission.id)
    assert state["status"].status == DecisionStatus.REJECTED
    assert len(state["scheduled_emails"]) == 1
    row = state["scheduled_emails"][0]
    assert row.status == ScheduledEmailStatus.CANCELLED
    assert row.sent_at is None

    again = workflow.schedule_email(submission.id, "rejection")
    assert again.status == ScheduledEmailStatus.PENDING
    assert again.id != email.id


def test_review_decide_notify(workflow, speaker, submission, transport, clock):
    workflow.set_status(submission.id, "under_review")
    for reviewer, score in (("r1", 4), ("r2", 5), ("r3", 3)):
        workflow.submit_review(submission.id, reviewer, scores={"overall": score, "relevance": 4})

    scoring = workflow.submission_scoring(submission.id)
    assert scoring.status.value == "likely_shortlisted"

    workflow.set_status(submission.id, "accepted")
    workflow.decide(submission.id, "accepted", notes="strong reviews", decided_by="chair")
    email = workflow.schedule_email(
        submission.id, "acceptance", ScheduleEmailOptions(personal_message="See you there!")
    )

    clock.advance(minutes=15)
    assert workflow.time_remaining(email.id) == 15
    assert workflow.tick_dispatch_worker().sent == []

    clock.advance(minutes=15)
    result = workflow.tick_dispatch_worker()
    assert result.sent == [email.id]

    sent = workflow.scheduler.get(email.id)
    assert sent.status == ScheduledEmailStatus.SENT
    assert sent.sent_at == clock.now()
    assert workflow.time_remaining(email.id) == 0

    call = transport.calls[0]
    assert call["template_type"] == "acceptance"
    assert call["data"]["personal_message"] == "See you there!"

    # Re-deciding afterwards is allowed and leaves pipeline status alone.
    clock.advance(days=1)
    workflow.decide(submission.id, "rejected", decided_by="chair")
    assert workflow.submissions.get_submission(submission.id).status == SubmissionStatus.ACCEPTED
    assert len(workflow.decision_history(submission.id)) == 2
    assert [e.id for e in workflow.scheduler.history(submission.id)] == [email.id]


def test_failed_send_then_fresh_schedule(workflow, submission, transport, clock):
    from cfpdesk.domain.errors import TransportError

    email = workflow.schedule_email(submission.id, "rejection")
    transport.fail_with = TransportError("timeout")
    clock.advance(minutes=30)
    assert workflow.tick_dispatch_worker().failed == [email.id]

    transport.fail_with = None
    retry = workflow.schedule_email(submission.id, "rejection")
    assert retry.scheduled_for == clock.now() + timedelta(minutes=30)

    clock.advance(minutes=30)
    assert workflow.tick_dispatch_worker().sent == [retry.id]
    statuses = sorted(e.status.value for e in workflow.scheduler.list_for_submission(submission.id))
    assert statuses == ["failed", "sent"]
