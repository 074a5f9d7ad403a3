"""DecisionPort: current decision + decision audit trail."""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from cfpdesk.domain.decision import Decision, DecisionEvent, DecisionStatus


@runtime_checkable
class DecisionPort(Protocol):
    def decide(
        self,
        submission_id: str,
        decision: DecisionStatus,
        *,
        notes: Optional[str] = None,
        decided_by: Optional[str] = None,
    ) -> Decision: ...

    def get_decision(self, submission_id: str) -> Decision: ...

    def list_events(self, submission_id: str) -> List[DecisionEvent]: ...
