"""
Review-pipeline status for submissions.

Every status may be set from every other status, so committee mistakes (including an
accepted talk going back to under_review) can always be corrected. Setting a status to
its current value succeeds without writing anything. Decision and email state are never
touched from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from cfpdesk.application.ports.submission_port import SubmissionPort
from cfpdesk.domain.errors import CfpError, NotFoundError
from cfpdesk.domain.submission import Submission, SubmissionStatus
from cfpdesk.utils.logging_config import LogFiles, Logger


@dataclass
class StatusChangeResult:
    submission_id: str
    previous_status: SubmissionStatus
    status: SubmissionStatus
    submission: Optional[Submission] = None

    @property
    def changed(self) -> bool:
        return self.previous_status != self.status

    def to_dict(self) -> Dict[str, Any]:
        return {
            "submission_id": self.submission_id,
            "previous_status": self.previous_status.value,
            "status": self.status.value,
            "changed": self.changed,
        }


@dataclass
class BulkStatusResult:
    """Per-id outcome of a bulk update. One failing id never aborts the rest."""

    status: SubmissionStatus
    succeeded: List[StatusChangeResult] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def succeeded_ids(self) -> List[str]:
        return [r.submission_id for r in self.succeeded]

    @property
    def failed_ids(self) -> List[str]:
        return list(self.failed)

    @property
    def all_succeeded(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "success_count": len(self.succeeded),
            "failure_count": len(self.failed),
            "succeeded": [r.to_dict() for r in self.succeeded],
            "failed": [{"submission_id": k, "error": v} for k, v in self.failed.items()],
        }


class SubmissionStatusMachine:
    def __init__(self, submissions: SubmissionPort):
        self._submissions = submissions

    def set_status(self, submission_id: str, status: Any) -> StatusChangeResult:
        target = SubmissionStatus.parse(status)
        current = self._submissions.get_submission(submission_id)
        if current is None:
            raise NotFoundError("submission", submission_id)

        if current.status == target:
            return StatusChangeResult(submission_id, current.status, target, current)

        updated = self._submissions.update_status(submission_id, target)
        if updated is None:
            # Deleted between the read and the write.
            raise NotFoundError("submission", submission_id)

        Logger.info(
            "Submission status changed",
            file=LogFiles.DECISIONS,
            submission_id=submission_id,
            previous=current.status.value,
            status=target.value,
        )
        return StatusChangeResult(submission_id, current.status, target, updated)

    def bulk_set_status(self, submission_ids: Iterable[str], status: Any) -> BulkStatusResult:
        target = SubmissionStatus.parse(status)
        result = BulkStatusResult(status=target)

        seen = set()
        for submission_id in submission_ids:
            if submission_id in seen:
                continue
            seen.add(submission_id)
            try:
                result.succeeded.append(self.set_status(submission_id, target))
            except CfpError as exc:
                result.failed[submission_id] = str(exc)

        if result.failed:
            Logger.warning(
                "Bulk status update finished with failures",
                file=LogFiles.DECISIONS,
                status=target.value,
                succeeded=len(result.succeeded),
                failed=len(result.failed),
            )
        return result
