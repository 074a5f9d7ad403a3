import pytest

from cfpdesk.domain.attendance import AttendanceStatus
from cfpdesk.domain.errors import ConflictError, NotFoundError


def test_scheduling_acceptance_opens_pending_confirmation(workflow, speaker, submission, clock):
    assert workflow.get_attendance(submission.id) is None

    workflow.schedule_email(submission.id, "acceptance")

    attendance = workflow.get_attendance(submission.id)
    assert attendance.status == AttendanceStatus.PENDING
    assert attendance.speaker_id == speaker.id
    assert attendance.responded_at is None
    assert attendance.created_at == clock.now()


def test_rejection_email_has_no_confirmation(workflow, submission):
    workflow.schedule_email(submission.id, "rejection")
    assert workflow.get_attendance(submission.id) is None


def test_conflicting_acceptance_schedule_leaves_no_side_effect(workflow, submission):
    workflow.schedule_email(submission.id, "acceptance")
    with pytest.raises(ConflictError):
        workflow.schedule_email(submission.id, "acceptance")
    assert workflow.get_attendance(submission.id).status == AttendanceStatus.PENDING


def test_rescheduling_keeps_an_existing_answer(workflow, submission):
    first = workflow.schedule_email(submission.id, "acceptance")
    workflow.set_status(submission.id, "accepted")
    workflow.respond_attendance(submission.id, "confirm")
    workflow.cancel_scheduled_email(first.id)

    workflow.schedule_email(submission.id, "acceptance")

    assert workflow.get_attendance(submission.id).status == AttendanceStatus.CONFIRMED


def test_confirm_and_then_decline(workflow, submission, clock):
    workflow.schedule_email(submission.id, "acceptance")
    workflow.set_status(submission.id, "accepted")

    confirmed = workflow.respond_attendance(submission.id, "confirm")
    assert confirmed.status == AttendanceStatus.CONFIRMED
    assert confirmed.responded_at == clock.now()

    clock.advance(days=2)
    declined = workflow.respond_attendance(
        submission.id, "decline", decline_reason="Travel", decline_notes=" visa delayed "
    )
    assert declined.status == AttendanceStatus.DECLINED
    assert declined.decline_reason == "travel"
    assert declined.decline_notes == "visa delayed"
    assert declined.responded_at == clock.now()

    reconfirmed = workflow.respond_attendance(submission.id, "confirm", decline_reason="other")
    assert reconfirmed.decline_reason is None
    assert reconfirmed.decline_notes is None


def test_respond_without_prior_email_creates_record(workflow, submission):
    workflow.set_status(submission.id, "accepted")
    attendance = workflow.respond_attendance(submission.id, "decline")
    assert attendance.status == AttendanceStatus.DECLINED
    assert attendance.decline_reason is None


def test_respond_requires_accepted_submission(workflow, submission):
    workflow.schedule_email(submission.id, "acceptance")
    with pytest.raises(ValueError):
        workflow.respond_attendance(submission.id, "confirm")


@pytest.mark.parametrize(
    "kwargs",
    [{"response": "maybe"}, {"response": "decline", "decline_reason": "bored"}],
)
def test_respond_rejects_bad_input(workflow, submission, kwargs):
    workflow.set_status(submission.id, "accepted")
    response = kwargs.pop("response")
    with pytest.raises(ValueError):
        workflow.respond_attendance(submission.id, response, **kwargs)


def test_respond_unknown_submission(workflow):
    with pytest.raises(NotFoundError):
        workflow.respond_attendance("missing", "confirm")
