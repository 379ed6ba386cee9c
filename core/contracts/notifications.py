"""core/contracts/notifications.py
==============================

Notification delivery contract (in-app, e-mail, ...).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class DecisionNotice:
    """A decision that somebody should hear about."""

    document_id: str
    title: str
    level: int
    decision: str                 # approved | rejected | revision_requested
    decided_by: str
    comment: Optional[str] = None
    next_approver_id: Optional[str] = None
    submitted_by: Optional[str] = None
    final: bool = False


class INotifier(ABC):
    """Delivers workflow notifications."""

    @abstractmethod
    def document_submitted(self, *, document_id: str, title: str, first_approver_id: str) -> None:
        """A new document waits for its first approver."""

    @abstractmethod
    def decision_recorded(self, notice: DecisionNotice) -> None:
        """A level was decided."""
