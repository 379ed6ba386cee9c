"""Document repository interface.

Defines the contract for approval data access without implementation details.
Implementations must make ``create`` and ``commit_decision`` atomic.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from approvals.models.approval_models import (
    ApprovalChainState,
    ApprovalLevel,
    Document,
    PendingApproval,
    SignatureRecord,
)


class DocumentRepository(ABC):
    """Storage for documents, their approval levels and signature records."""

    # ===== Lifecycle Operations =====

    @abstractmethod
    def create(self, document: Document, levels: Sequence[ApprovalLevel]) -> ApprovalChainState:
        """
        Persist a new document together with its full chain in one step.

        Args:
            document: New document (version 0)
            levels: Resolved levels 1..N

        Returns:
            The stored chain state
        """
        raise NotImplementedError

    @abstractmethod
    def commit_decision(
        self,
        state: ApprovalChainState,
        *,
        expected_version: int,
        signature: Optional[SignatureRecord] = None,
    ) -> ApprovalChainState:
        """
        Write a decided chain state: levels, document status and signed
        pointer, and the optional signature record, all or nothing.

        Args:
            state: Chain state after the decision
            expected_version: Document version the decision was computed from
            signature: New signature record (approvals only)

        Returns:
            The stored state with the bumped document version

        Raises:
            ConcurrentModificationError: the stored version moved on
        """
        raise NotImplementedError

    @abstractmethod
    def set_original_missing(self, document_id: str, missing: bool) -> None:
        """Flag (or clear) a document whose original artifact is gone."""
        raise NotImplementedError

    # ===== Query Operations =====

    @abstractmethod
    def get(self, document_id: str) -> Optional[Document]:
        raise NotImplementedError

    @abstractmethod
    def get_state(self, document_id: str) -> Optional[ApprovalChainState]:
        """Document plus levels ordered by level, or None."""
        raise NotImplementedError

    @abstractmethod
    def list_documents(self) -> List[Document]:
        raise NotImplementedError

    @abstractmethod
    def list_signatures(self, document_id: str) -> List[SignatureRecord]:
        """Signature records ordered by level."""
        raise NotImplementedError

    @abstractmethod
    def pending_for(self, approver_id: str) -> List[PendingApproval]:
        """
        Levels that *approver_id* can decide right now: awaiting, with every
        earlier level approved, on an open document. Ordered by priority
        (urgent first), then submission time.
        """
        raise NotImplementedError

    def exists(self, document_id: str) -> bool:
        return self.get(document_id) is not None


def pending_sort_key(item: PendingApproval):
    return (item.priority.rank, item.submitted_at, item.document_id)


def pending_from_state(state: ApprovalChainState, approver_id: str) -> Optional[PendingApproval]:
    """PendingApproval for *approver_id* if they are up next on an open document."""
    doc = state.document
    if not doc.status.is_open:
        return None
    current = state.current_level
    if current is None or str(current.approver.principal_id) != str(approver_id):
        return None
    return PendingApproval(
        document_id=doc.id,
        title=doc.title,
        doc_type=doc.doc_type,
        department=doc.department,
        level=current.level,
        role=current.role,
        priority=doc.priority,
        submitted_by=doc.submitted_by,
        submitted_at=doc.created_at,
    )
