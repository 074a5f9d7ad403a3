"""ReviewPort: review read/write interface."""

from __future__ import annotations

from typing import List, Optional, Protocol, runtime_checkable

from cfpdesk.domain.review import Review


@runtime_checkable
class ReviewPort(Protocol):
    """At most one review per (submission_id, reviewer_id); upsert overwrites."""

    def upsert_review(self, review: Review) -> Review: ...

    def get_review(self, submission_id: str, reviewer_id: str) -> Optional[Review]: ...

    def list_reviews(self, submission_id: str) -> List[Review]: ...

    def count_reviewers(self) -> int: ...

    def count_reviews(self) -> int: ...
