from datetime import timedelta
from uuid import uuid4

import pytest

from cfpdesk.domain.errors import ConflictError
from cfpdesk.domain.scheduled_email import (
    AcceptanceContent,
    Coupon,
    EmailType,
    RejectionContent,
    ScheduledEmail,
    ScheduledEmailStatus,
)


def _email(submission_id, scheduled_for, content=None) -> ScheduledEmail:
    return ScheduledEmail(
        id=uuid4().hex,
        submission_id=submission_id,
        content=content or AcceptanceContent(personal_message="Welcome"),
        scheduled_for=scheduled_for,
        recipient_email="ada@example.com",
        recipient_name="Ada",
        talk_title="Talk",
    )


@pytest.fixture()
def store(workflow):
    return workflow.emails


def test_insert_and_read_back_rejection_variant(store, submission, clock):
    coupon = Coupon(code="CFPTHXABC123", discount_percent=20, validity_days=14,
                    expires_at=clock.now() + timedelta(days=14))
    email = store.insert_pending(
        _email(submission.id, clock.now(), RejectionContent(coupon=coupon))
    )

    loaded = store.get(email.id)
    assert isinstance(loaded.content, RejectionContent)
    assert loaded.coupon == coupon
    assert loaded.feedback is None
    assert loaded.to_dict()["include_feedback"] is False


def test_partial_unique_index_backs_up_precheck(store, submission, clock, monkeypatch):
    store.insert_pending(_email(submission.id, clock.now()))
    # Simulate a concurrent insert that passed the pre-check.
    monkeypatch.setattr(store, "find_pending", lambda *_: None)

    with pytest.raises(ConflictError):
        store.insert_pending(_email(submission.id, clock.now()))

    monkeypatch.undo()
    pending = [e for e in store.list_for_submission(submission.id) if e.is_pending]
    assert len(pending) == 1


def test_resolved_rows_do_not_block_new_pending(store, submission, clock):
    first = store.insert_pending(_email(submission.id, clock.now()))
    assert store.update_if(
        first.id,
        expected_status=ScheduledEmailStatus.PENDING,
        new_status=ScheduledEmailStatus.CANCELLED,
        values={"cancelled_at": clock.now()},
    )

    second = store.insert_pending(_email(submission.id, clock.now()))
    assert store.find_pending(submission.id, EmailType.ACCEPTANCE).id == second.id


def test_claim_has_exactly_one_winner(store, submission, clock):
    email = store.insert_pending(_email(submission.id, clock.now()))

    assert store.claim(email.id, "worker-a", clock.now()) is True
    assert store.claim(email.id, "worker-b", clock.now()) is False
    assert store.get(email.id).claim_id == "worker-a"


def test_update_if_requires_matching_status_and_claim(store, submission, clock):
    email = store.insert_pending(_email(submission.id, clock.now()))
    store.claim(email.id, "worker-a", clock.now())

    # Unclaimed transitions no longer match once the row is claimed.
    assert not store.update_if(
        email.id,
        expected_status=ScheduledEmailStatus.PENDING,
        new_status=ScheduledEmailStatus.CANCELLED,
    )
    assert not store.update_if(
        email.id,
        expected_status=ScheduledEmailStatus.PENDING,
        new_status=ScheduledEmailStatus.SENT,
        claim_id="worker-b",
    )
    assert store.update_if(
        email.id,
        expected_status=ScheduledEmailStatus.PENDING,
        new_status=ScheduledEmailStatus.SENT,
        claim_id="worker-a",
        values={"sent_at": clock.now()},
    )
    assert not store.update_if(
        email.id,
        expected_status=ScheduledEmailStatus.PENDING,
        new_status=ScheduledEmailStatus.FAILED,
        claim_id="worker-a",
    )
    assert store.get(email.id).status == ScheduledEmailStatus.SENT


def test_update_if_rejects_unknown_columns(store, submission, clock):
    email = store.insert_pending(_email(submission.id, clock.now()))
    with pytest.raises(ValueError):
        store.update_if(
            email.id,
            expected_status=ScheduledEmailStatus.PENDING,
            new_status=ScheduledEmailStatus.SENT,
            values={"recipient_email": "other@example.com"},
        )


def test_list_due_orders_oldest_first_and_skips_claimed(store, speaker, submission, workflow, clock):
    other = workflow.submissions.create_submission(speaker_id=speaker.id, title="Other")
    later = store.insert_pending(_email(submission.id, clock.now() + timedelta(minutes=5)))
    earlier = store.insert_pending(_email(other.id, clock.now()))
    future = clock.now() + timedelta(minutes=10)

    assert [e.id for e in store.list_due(future)] == [earlier.id, later.id]
    assert [e.id for e in store.list_due(future, limit=1)] == [earlier.id]

    store.claim(earlier.id, "worker-a", clock.now())
    assert [e.id for e in store.list_due(future)] == [later.id]
    assert [e.id for e in store.list_stale_claims(future)] == [earlier.id]
