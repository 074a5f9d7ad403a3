"""Review domain value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

SCORE_DIMENSIONS: Tuple[str, ...] = (
    "overall",
    "relevance",
    "technical_depth",
    "clarity",
    "diversity",
)

MIN_SCORE = 1
MAX_SCORE = 5


@dataclass
class Review:
    """One reviewer's scores for one submission. Any score may be None (skipped)."""

    submission_id: str
    reviewer_id: str
    id: Optional[int] = None
    overall: Optional[float] = None
    relevance: Optional[float] = None
    technical_depth: Optional[float] = None
    clarity: Optional[float] = None
    diversity: Optional[float] = None
    private_notes: Optional[str] = None
    feedback_to_speaker: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def score(self, dimension: str) -> Optional[float]:
        if dimension not in SCORE_DIMENSIONS:
            raise KeyError(dimension)
        return getattr(self, dimension)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "submission_id": self.submission_id,
            "reviewer_id": self.reviewer_id,
            "private_notes": self.private_notes,
            "feedback_to_speaker": self.feedback_to_speaker,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        for dim in SCORE_DIMENSIONS:
            out[f"score_{dim}"] = getattr(self, dim)
        return out


def validate_score(dimension: str, value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"Score '{dimension}' must be a number") from None
    if number < MIN_SCORE or number > MAX_SCORE:
        raise ValueError(f"Score '{dimension}' must be between {MIN_SCORE} and {MAX_SCORE}")
    return number
