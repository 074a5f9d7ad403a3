from __future__ import annotations

from typing import Any, Dict, List, Optional

from cfpdesk.application.ports.decision_port import DecisionPort
from cfpdesk.application.ports.review_port import ReviewPort
from cfpdesk.application.ports.submission_port import SubmissionPort
from cfpdesk.domain.errors import NotFoundError, ReviewLockedError
from cfpdesk.domain.review import SCORE_DIMENSIONS, Review, validate_score
from cfpdesk.utils.logging_config import LogFiles, Logger


class ReviewService:
    """
    Submit and read committee reviews.

    When ``lock_after_decision`` is on, a submission with an accepted/rejected decision
    no longer takes review writes.
    """

    def __init__(
        self,
        reviews: ReviewPort,
        submissions: SubmissionPort,
        decisions: DecisionPort,
        *,
        lock_after_decision: bool = False,
    ):
        self._reviews = reviews
        self._submissions = submissions
        self._decisions = decisions
        self.lock_after_decision = lock_after_decision

    def submit_review(
        self,
        submission_id: str,
        reviewer_id: str,
        *,
        scores: Optional[Dict[str, Any]] = None,
        private_notes: Optional[str] = None,
        feedback_to_speaker: Optional[str] = None,
    ) -> Review:
        reviewer_id = (reviewer_id or "").strip()
        if not reviewer_id:
            raise ValueError("reviewer_id is required")

        scores = dict(scores or {})
        unknown = set(scores) - set(SCORE_DIMENSIONS)
        if unknown:
            raise ValueError(f"Unknown score dimensions: {', '.join(sorted(unknown))}")
        validated = {dim: validate_score(dim, scores.get(dim)) for dim in SCORE_DIMENSIONS}

        if self._submissions.get_submission(submission_id) is None:
            raise NotFoundError("submission", submission_id)

        if self.lock_after_decision:
            decision = self._decisions.get_decision(submission_id)
            if decision.is_decided:
                raise ReviewLockedError(
                    f"Reviews are locked: submission already {decision.status.value}"
                )

        review = self._reviews.upsert_review(
            Review(
                submission_id=submission_id,
                reviewer_id=reviewer_id,
                private_notes=(private_notes or "").strip() or None,
                feedback_to_speaker=(feedback_to_speaker or "").strip() or None,
                **validated,
            )
        )
        Logger.info(
            "Review saved",
            file=LogFiles.DECISIONS,
            submission_id=submission_id,
            reviewer_id=reviewer_id,
        )
        return review

    def list_reviews(self, submission_id: str) -> List[Review]:
        return self._reviews.list_reviews(submission_id)

    def count_reviewers(self) -> int:
        return self._reviews.count_reviewers()
