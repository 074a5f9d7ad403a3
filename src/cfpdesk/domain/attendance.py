# src/cfpdesk/domain/attendance.py
"""
Speaker attendance confirmation.

Scheduling an acceptance email opens a ``pending`` confirmation for the accepted talk;
the speaker later confirms or declines from the dashboard the email links to.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional


class AttendanceStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DECLINED = "declined"


class AttendanceResponse(str, Enum):
    CONFIRM = "confirm"
    DECLINE = "decline"

    @classmethod
    def parse(cls, value: Any) -> "AttendanceResponse":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            raise ValueError(f"Unknown attendance response '{value}' (expected confirm or decline)")

    @property
    def status(self) -> AttendanceStatus:
        return AttendanceStatus.CONFIRMED if self == AttendanceResponse.CONFIRM else AttendanceStatus.DECLINED


@dataclass
class AttendanceConfirmation:
    submission_id: str
    speaker_id: str
    status: AttendanceStatus = AttendanceStatus.PENDING
    responded_at: Optional[datetime] = None
    decline_reason: Optional[str] = None
    decline_notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "speaker_id": self.speaker_id,
            "status": self.status.value,
            "responded_at": self.responded_at.isoformat() if self.responded_at else None,
            "decline_reason": self.decline_reason,
            "decline_notes": self.decline_notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
