"""Document status enumeration.

The document status is never set directly; it is derived from the statuses of
the document's approval levels (see ``approvals.logic.state_machine``).
"""
from __future__ import annotations

from enum import Enum


class DocumentStatus(str, Enum):
    """Aggregate lifecycle status of a routed document."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.APPROVED, DocumentStatus.REJECTED, DocumentStatus.REVISION_REQUESTED)

    @property
    def is_open(self) -> bool:
        return self in (DocumentStatus.PENDING, DocumentStatus.IN_REVIEW)
