"""SubmissionPort: submission read/status-write interface."""

from __future__ import annotations

from typing import Dict, List, Optional, Protocol, runtime_checkable

from cfpdesk.domain.attendance import AttendanceConfirmation, AttendanceStatus
from cfpdesk.domain.submission import Submission, SubmissionStatus


@runtime_checkable
class SubmissionPort(Protocol):
    """Abstract interface for submission persistence."""

    def get_submission(self, submission_id: str) -> Optional[Submission]: ...

    def update_status(
        self, submission_id: str, status: SubmissionStatus
    ) -> Optional[Submission]: ...

    def list_for_speaker(self, speaker_id: str) -> List[Submission]: ...

    def list_submissions(
        self, *, status: Optional[SubmissionStatus] = None, limit: int = 200
    ) -> List[Submission]: ...

    def count_submissions(self) -> int: ...

    def count_by_status(self) -> Dict[str, int]: ...

    def ensure_attendance(self, submission_id: str) -> AttendanceConfirmation: ...

    def get_attendance(self, submission_id: str) -> Optional[AttendanceConfirmation]: ...

    def record_attendance(
        self,
        submission_id: str,
        status: AttendanceStatus,
        *,
        decline_reason: Optional[str] = None,
        decline_notes: Optional[str] = None,
    ) -> AttendanceConfirmation: ...
