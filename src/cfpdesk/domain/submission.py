# src/cfpdesk/domain/submission.py
"""
Submission domain models.

- SubmissionStatus: review-pipeline status of a talk proposal
- SubmissionType: lightning / standard / workshop
- Speaker: owner of a submission (only what is needed to address an email)
- Submission: the proposal itself
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class SubmissionStatus(str, Enum):
    """Pipeline status. Every value is reachable from every other value."""

    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    SHORTLISTED = "shortlisted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WAITLISTED = "waitlisted"
    WITHDRAWN = "withdrawn"

    @classmethod
    def parse(cls, value: Any) -> "SubmissionStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValueError(f"Unknown submission status '{value}' (expected one of: {allowed})")


class SubmissionType(str, Enum):
    LIGHTNING = "lightning"
    STANDARD = "standard"
    WORKSHOP = "workshop"


@dataclass
class Speaker:
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        full = f"{self.first_name} {self.last_name}".strip()
        return full or self.email

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "display_name": self.display_name,
        }


@dataclass
class Submission:
    """
    A proposed conference talk or workshop.

    ``workshop_details`` holds the auxiliary workshop fields (duration, participants,
    compensation). They are stored as-is and never interpreted here.
    """

    id: str
    title: str
    speaker_id: str
    submission_type: SubmissionType = SubmissionType.STANDARD
    status: SubmissionStatus = SubmissionStatus.DRAFT
    workshop_details: Dict[str, Any] = field(default_factory=dict)
    speaker: Optional[Speaker] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "speaker_id": self.speaker_id,
            "submission_type": self.submission_type.value,
            "status": self.status.value,
            "workshop_details": dict(self.workshop_details),
            "speaker": self.speaker.to_dict() if self.speaker else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
