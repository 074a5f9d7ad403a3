"""
Score aggregation and shortlist classification for CFP submissions.

Everything here is pure: results are recomputed from the current review set on every
read, never cached.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

from cfpdesk.domain.review import SCORE_DIMENSIONS, Review


@dataclass(frozen=True)
class AggregateScores:
    """Per-dimension arithmetic mean; ``None`` where no reviewer scored that dimension."""

    review_count: int
    overall: Optional[float] = None
    relevance: Optional[float] = None
    technical_depth: Optional[float] = None
    clarity: Optional[float] = None
    diversity: Optional[float] = None

    def get(self, dimension: str) -> Optional[float]:
        if dimension not in SCORE_DIMENSIONS:
            raise KeyError(dimension)
        return getattr(self, dimension)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"review_count": self.review_count}
        for dim in SCORE_DIMENSIONS:
            out[f"avg_{dim}"] = getattr(self, dim)
        return out


def _mean(values: Sequence[float]) -> Optional[float]:
    if not values:
        return None
    # fsum is exactly rounded, so the mean does not depend on input order.
    return math.fsum(values) / len(values)


def aggregate(reviews: Iterable[Review]) -> Optional[AggregateScores]:
    """
    Reduce a review set to per-dimension means.

    Returns None when there are no reviews at all, which callers must keep distinct
    from a numeric average. Each dimension is averaged over the reviews that scored it.
    """
    reviews = list(reviews)
    if not reviews:
        return None

    means: Dict[str, Optional[float]] = {}
    for dim in SCORE_DIMENSIONS:
        values = [float(v) for v in (r.score(dim) for r in reviews) if v is not None]
        means[dim] = _mean(values)

    return AggregateScores(review_count=len(reviews), **means)


def round_to(value: float, decimals: int = 2) -> float:
    """Half-up rounding (``round`` would use banker's rounding)."""
    quantum = Decimal(1).scaleb(-decimals)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def format_score(value: Optional[float]) -> str:
    if value is None:
        return "-"
    text = f"{round_to(value, 2):.2f}"
    return text.rstrip("0").rstrip(".")


def format_percent(value: float) -> str:
    return f"{int(round_to(value, 0))}%"


class ShortlistStatus(str, Enum):
    LIKELY_SHORTLISTED = "likely_shortlisted"
    NEEDS_MORE_REVIEWS = "needs_more_reviews"
    LIKELY_REJECT = "likely_reject"
    BORDERLINE = "borderline"

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()


MIN_REVIEWS = 2
CONFIDENT_REVIEWS = 4
MIN_COVERAGE = 0.5
SHORTLIST_SCORE = 3.0
REJECT_SCORE = 2.0


def classify_submission(
    avg_score: Optional[float], review_count: int, coverage_ratio: float
) -> ShortlistStatus:
    # Not enough data wins over everything else.
    if review_count < MIN_REVIEWS or (
        review_count < CONFIDENT_REVIEWS and coverage_ratio < MIN_COVERAGE
    ):
        return ShortlistStatus.NEEDS_MORE_REVIEWS
    if avg_score is None:
        return ShortlistStatus.NEEDS_MORE_REVIEWS
    if avg_score >= SHORTLIST_SCORE:
        return ShortlistStatus.LIKELY_SHORTLISTED
    if avg_score < REJECT_SCORE:
        return ShortlistStatus.LIKELY_REJECT
    return ShortlistStatus.BORDERLINE


@dataclass(frozen=True)
class SubmissionScoring:
    review_count: int
    avg_score: Optional[float]
    total_reviewers: int
    coverage_ratio: float
    last_reviewed_at: Optional[datetime]
    status: ShortlistStatus

    @property
    def coverage_percent(self) -> float:
        return self.coverage_ratio * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "review_count": self.review_count,
            "avg_score": self.avg_score,
            "avg_score_display": format_score(self.avg_score),
            "total_reviewers": self.total_reviewers,
            "coverage_ratio": self.coverage_ratio,
            "coverage_percent": self.coverage_percent,
            "coverage_display": format_percent(self.coverage_percent),
            "last_reviewed_at": self.last_reviewed_at.isoformat() if self.last_reviewed_at else None,
            "status": self.status.value,
            "status_label": self.status.label,
        }


def compute_submission_scoring(
    reviews: Iterable[Review], total_reviewers: int
) -> SubmissionScoring:
    """Overall-score summary plus reviewer coverage, used to triage the shortlist."""
    reviews = list(reviews)
    review_count = len(reviews)
    avg_score = _mean([float(r.overall) for r in reviews if r.overall is not None])
    coverage_ratio = review_count / total_reviewers if total_reviewers > 0 else 0.0
    timestamps = [r.created_at for r in reviews if r.created_at is not None]

    return SubmissionScoring(
        review_count=review_count,
        avg_score=avg_score,
        total_reviewers=total_reviewers,
        coverage_ratio=coverage_ratio,
        last_reviewed_at=max(timestamps) if timestamps else None,
        status=classify_submission(avg_score, review_count, coverage_ratio),
    )


SCORE_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-1.99", 0.0, 1.99),
    ("2-2.99", 2.0, 2.99),
    ("3-3.49", 3.0, 3.49),
    ("3.5-5", 3.5, 5.0),
)

COVERAGE_BUCKETS: Tuple[Tuple[str, float, float], ...] = (
    ("0-24", 0, 24),
    ("25-49", 25, 49),
    ("50-74", 50, 74),
    ("75-100", 75, 100),
)


def score_bucket(score: Optional[float]) -> Optional[str]:
    if score is None or score < 0 or score > SCORE_BUCKETS[-1][2]:
        return None
    for key, low, _ in reversed(SCORE_BUCKETS):
        if score >= low:
            return key
    return None


def coverage_bucket(coverage_percent: float) -> str:
    """Over 100% (more reviews than active reviewers) lands in the top bucket."""
    for key, low, _ in reversed(COVERAGE_BUCKETS):
        if coverage_percent >= low:
            return key
    return COVERAGE_BUCKETS[0][0]


def bucket_counts(scorings: Iterable[SubmissionScoring]) -> Dict[str, Dict[str, int]]:
    """Histogram of average scores and coverage across many submissions."""
    scores: Dict[str, int] = {key: 0 for key, _, _ in SCORE_BUCKETS}
    coverage: Dict[str, int] = {key: 0 for key, _, _ in COVERAGE_BUCKETS}
    statuses: Dict[str, int] = {s.value: 0 for s in ShortlistStatus}
    for item in scorings:
        key = score_bucket(item.avg_score)
        if key:
            scores[key] += 1
        coverage[coverage_bucket(item.coverage_percent)] += 1
        statuses[item.status.value] += 1
    return {"score": scores, "coverage": coverage, "status": statuses}
