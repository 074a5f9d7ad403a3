import pytest

from cfpdesk.domain.errors import NotFoundError, ReviewLockedError


def test_submit_review_upserts_per_reviewer(workflow, submission, clock):
    workflow.submit_review(submission.id, "r1", scores={"overall": 2, "clarity": 3})
    clock.advance(minutes=5)
    updated = workflow.submit_review(
        submission.id, "r1", scores={"overall": 4}, private_notes="changed my mind"
    )

    reviews = workflow.review_service.list_reviews(submission.id)
    assert len(reviews) == 1
    assert updated.overall == 4
    assert updated.clarity is None
    assert updated.private_notes == "changed my mind"


def test_scores_recomputed_after_each_review(workflow, submission):
    assert workflow.aggregate_scores(submission.id) is None

    workflow.submit_review(submission.id, "r1", scores={"overall": 5})
    workflow.submit_review(submission.id, "r2", scores={"overall": 3, "diversity": 4})

    result = workflow.aggregate_scores(submission.id)
    assert result.review_count == 2
    assert result.overall == pytest.approx(4.0)
    assert result.diversity == pytest.approx(4.0)

    scoring = workflow.submission_scoring(submission.id)
    assert scoring.total_reviewers == 2
    assert scoring.coverage_ratio == pytest.approx(1.0)


@pytest.mark.parametrize("scores", [{"overall": 0}, {"overall": 6}, {"clarity": "great"}])
def test_submit_review_validates_scores(workflow, submission, scores):
    with pytest.raises(ValueError):
        workflow.submit_review(submission.id, "r1", scores=scores)


def test_submit_review_rejects_unknown_dimension(workflow, submission):
    with pytest.raises(ValueError):
        workflow.submit_review(submission.id, "r1", scores={"charisma": 5})


def test_submit_review_requires_reviewer(workflow, submission):
    with pytest.raises(ValueError):
        workflow.submit_review(submission.id, "  ", scores={"overall": 3})


def test_submit_review_unknown_submission(workflow):
    with pytest.raises(NotFoundError):
        workflow.submit_review("missing", "r1", scores={"overall": 3})


def test_reviews_stay_open_after_decision_by_default(workflow, submission):
    workflow.decide(submission.id, "accepted")
    review = workflow.submit_review(submission.id, "r1", scores={"overall": 4})
    assert review.overall == 4


def test_reviews_lock_after_decision_when_enabled(workflow, submission):
    workflow.review_service.lock_after_decision = True
    workflow.submit_review(submission.id, "r1", scores={"overall": 4})
    workflow.decide(submission.id, "rejected")

    with pytest.raises(ReviewLockedError):
        workflow.submit_review(submission.id, "r1", scores={"overall": 1})


def test_count_reviewers_is_distinct(workflow, speaker, submission):
    other = workflow.submissions.create_submission(speaker_id=speaker.id, title="Other")
    workflow.submit_review(submission.id, "r1", scores={"overall": 3})
    workflow.submit_review(other.id, "r1", scores={"overall": 3})
    workflow.submit_review(other.id, "r2", scores={"overall": 3})

    assert workflow.review_service.count_reviewers() == 2
    assert workflow.reviews.count_reviews() == 3
