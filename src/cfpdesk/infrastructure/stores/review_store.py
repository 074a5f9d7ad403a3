from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from cfpdesk.application.ports.clock import Clock, SystemClock
from cfpdesk.domain.errors import NotFoundError
from cfpdesk.domain.review import SCORE_DIMENSIONS, Review
from cfpdesk.infrastructure.stores.models import Base, ReviewModel, SubmissionModel
from cfpdesk.infrastructure.stores.sqlalchemy_db import SessionProvider, get_db_url


class ReviewStore:
    """One review per (submission, reviewer); writing again overwrites in place."""

    def __init__(
        self,
        db_url: Optional[str] = None,
        *,
        auto_create_schema: bool = True,
        clock: Optional[Clock] = None,
    ):
        self.db_url = db_url or get_db_url()
        self._provider = SessionProvider(self.db_url)
        self._clock = clock or SystemClock()
        if auto_create_schema:
            Base.metadata.create_all(self._provider.engine)

    def upsert_review(self, review: Review) -> Review:
        try:
            return self._upsert(review)
        except IntegrityError:
            # Lost an insert race against the same reviewer; the row exists now.
            return self._upsert(review)

    def _upsert(self, review: Review) -> Review:
        now = self._clock.now()
        with self._provider.session() as session:
            if session.get(SubmissionModel, review.submission_id) is None:
                raise NotFoundError("submission", review.submission_id)

            row = session.execute(
                select(ReviewModel).where(
                    ReviewModel.submission_id == review.submission_id,
                    ReviewModel.reviewer_id == review.reviewer_id,
                )
            ).scalar_one_or_none()

            if row is None:
                row = ReviewModel(
                    submission_id=review.submission_id,
                    reviewer_id=review.reviewer_id,
                    created_at=now,
                )
                session.add(row)

            for dim in SCORE_DIMENSIONS:
                setattr(row, f"score_{dim}", getattr(review, dim))
            row.private_notes = review.private_notes
            row.feedback_to_speaker = review.feedback_to_speaker
            row.updated_at = now

            session.commit()
            session.refresh(row)
            return self._to_domain(row)

    def get_review(self, submission_id: str, reviewer_id: str) -> Optional[Review]:
        with self._provider.session() as session:
            row = session.execute(
                select(ReviewModel).where(
                    ReviewModel.submission_id == submission_id,
                    ReviewModel.reviewer_id == reviewer_id,
                )
            ).scalar_one_or_none()
            return self._to_domain(row) if row else None

    def list_reviews(self, submission_id: str) -> List[Review]:
        with self._provider.session() as session:
            rows = session.execute(
                select(ReviewModel)
                .where(ReviewModel.submission_id == submission_id)
                .order_by(ReviewModel.created_at.desc(), ReviewModel.id.desc())
            ).scalars().all()
            return [self._to_domain(r) for r in rows]

    def count_reviewers(self) -> int:
        """Distinct reviewers who have reviewed anything."""
        with self._provider.session() as session:
            total = session.execute(
                select(func.count(func.distinct(ReviewModel.reviewer_id)))
            ).scalar_one()
            return int(total or 0)

    def count_reviews(self) -> int:
        with self._provider.session() as session:
            return int(session.execute(select(func.count(ReviewModel.id))).scalar_one() or 0)

    def close(self) -> None:
        self._provider.engine.dispose()

    @staticmethod
    def _to_domain(row: ReviewModel) -> Review:
        return Review(
            id=row.id,
            submission_id=row.submission_id,
            reviewer_id=row.reviewer_id,
            overall=row.score_overall,
            relevance=row.score_relevance,
            technical_depth=row.score_technical_depth,
            clarity=row.score_clarity,
            diversity=row.score_diversity,
            private_notes=row.private_notes,
            feedback_to_speaker=row.feedback_to_speaker,
            created_at=row.created_at,
            updated_at=row.updated_at,
        )
