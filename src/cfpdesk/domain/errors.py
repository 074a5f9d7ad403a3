"""Errors raised by the decision & communication workflow."""

from __future__ import annotations

from typing import Any, Optional


class CfpError(Exception):
    """Base class for workflow errors."""


class NotFoundError(CfpError):
    def __init__(self, kind: str, id: Any):
        self.kind = kind
        self.id = id
        super().__init__(f"{kind} not found: {id}")


class ConflictError(CfpError):
    """A pending email of the same type already exists for the submission."""

    def __init__(self, message: str, existing: Optional[Any] = None):
        self.existing = existing
        super().__init__(message)


class NotCancellableError(CfpError):
    """The scheduled email is no longer pending."""

    def __init__(self, message: str, status: Optional[str] = None):
        self.status = status
        super().__init__(message)


class AlreadyResolvedError(NotCancellableError):
    """Another caller resolved (or started sending) the row first."""


class TransportError(CfpError):
    """The mail transport rejected the message or timed out."""


class ReviewLockedError(CfpError):
    """Reviews are locked because the submission has a decision."""
