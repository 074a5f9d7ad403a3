"""Decision domain value objects."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class DecisionStatus(str, Enum):
    UNDECIDED = "undecided"
    ACCEPTED = "accepted"
    REJECTED = "rejected"

    @classmethod
    def parse_final(cls, value: Any) -> "DecisionStatus":
        """Parse a decision a committee may record (``undecided`` is not one)."""
        raw = value.value if isinstance(value, cls) else str(value or "").strip().lower()
        if raw == cls.ACCEPTED.value:
            return cls.ACCEPTED
        if raw == cls.REJECTED.value:
            return cls.REJECTED
        raise ValueError(f"Decision must be 'accepted' or 'rejected', got '{value}'")


class DecisionEventType(str, Enum):
    DECISION_MADE = "decision_made"
    DECISION_CHANGED = "decision_changed"


@dataclass
class Decision:
    """Current decision for a submission. ``undecided`` when nothing was recorded."""

    submission_id: str
    status: DecisionStatus = DecisionStatus.UNDECIDED
    notes: Optional[str] = None
    decided_at: Optional[datetime] = None
    decided_by: Optional[str] = None

    @property
    def is_decided(self) -> bool:
        return self.status != DecisionStatus.UNDECIDED

    @classmethod
    def undecided(cls, submission_id: str) -> "Decision":
        return cls(submission_id=submission_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "decision_status": self.status.value,
            "notes": self.notes,
            "decided_at": self.decided_at.isoformat() if self.decided_at else None,
            "decided_by": self.decided_by,
        }


@dataclass(frozen=True)
class DecisionEvent:
    """Immutable audit entry appended on every decide() call."""

    submission_id: str
    event_type: DecisionEventType
    previous_status: DecisionStatus
    new_status: DecisionStatus
    id: Optional[int] = None
    admin_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "submission_id": self.submission_id,
            "event_type": self.event_type.value,
            "previous_status": self.previous_status.value,
            "new_status": self.new_status.value,
            "admin_id": self.admin_id,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
