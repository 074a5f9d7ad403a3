"""ScheduledEmailPort: persistence for scheduled decision emails.

All transitions out of ``pending`` go through ``update_if`` / ``claim``: conditional
updates that only touch the row if it is still in the expected state, so concurrent
callers (the dispatch worker and an operator) can never both resolve the same row.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable

from cfpdesk.domain.scheduled_email import EmailType, ScheduledEmail, ScheduledEmailStatus


@runtime_checkable
class ScheduledEmailPort(Protocol):
    def insert_pending(self, email: ScheduledEmail) -> ScheduledEmail:
        """Insert a pending row; raises ConflictError if one is already pending."""
        ...

    def get(self, email_id: str) -> Optional[ScheduledEmail]: ...

    def find_pending(
        self, submission_id: str, email_type: EmailType
    ) -> Optional[ScheduledEmail]: ...

    def list_for_submission(self, submission_id: str) -> List[ScheduledEmail]: ...

    def list_due(self, now: datetime, *, limit: int = 100) -> List[ScheduledEmail]: ...

    def list_stale_claims(self, older_than: datetime) -> List[ScheduledEmail]: ...

    def claim(self, email_id: str, claim_id: str, now: datetime) -> bool: ...

    def update_if(
        self,
        email_id: str,
        *,
        expected_status: ScheduledEmailStatus,
        new_status: ScheduledEmailStatus,
        claim_id: Optional[str] = None,
        values: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Apply the transition only if status and claim_id still match (None = unclaimed)."""
        ...
