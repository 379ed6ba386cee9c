"""In-memory DocumentRepository for tests and single-process use."""

from __future__ import annotations

import copy
import threading
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from approvals.exceptions.errors import ConcurrentModificationError, UnknownDocumentError
from approvals.models.approval_models import (
    ApprovalChainState,
    ApprovalLevel,
    Document,
    PendingApproval,
    SignatureRecord,
)
from approvals.repository.document_repository import DocumentRepository, pending_from_state, pending_sort_key


class InMemoryDocumentRepository(DocumentRepository):
    """Dict-backed repository. Returned objects are copies."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._docs: Dict[str, Document] = {}
        self._levels: Dict[str, List[ApprovalLevel]] = {}
        self._signatures: Dict[str, List[SignatureRecord]] = {}

    # ---- lifecycle --------------------------------------------------------- #
    def create(self, document: Document, levels: Sequence[ApprovalLevel]) -> ApprovalChainState:
        with self._lock:
            if document.id in self._docs:
                raise ValueError(f"Document {document.id} already exists")
            self._docs[document.id] = copy.deepcopy(document)
            self._levels[document.id] = sorted(copy.deepcopy(list(levels)), key=lambda l: l.level)
            self._signatures[document.id] = []
            return self._state_locked(document.id)

    def commit_decision(
        self,
        state: ApprovalChainState,
        *,
        expected_version: int,
        signature: Optional[SignatureRecord] = None,
    ) -> ApprovalChainState:
        doc_id = state.document.id
        with self._lock:
            stored = self._docs.get(doc_id)
            if stored is None:
                raise UnknownDocumentError(doc_id)
            if stored.version != expected_version:
                raise ConcurrentModificationError(
                    f"Document {doc_id} changed (version {stored.version}, expected {expected_version})."
                )
            self._docs[doc_id] = replace(copy.deepcopy(state.document), version=expected_version + 1)
            self._levels[doc_id] = sorted(copy.deepcopy(list(state.levels)), key=lambda l: l.level)
            if signature is not None:
                self._signatures[doc_id].append(signature)
            return self._state_locked(doc_id)

    def set_original_missing(self, document_id: str, missing: bool) -> None:
        with self._lock:
            doc = self._docs.get(document_id)
            if doc is None:
                raise UnknownDocumentError(document_id)
            doc.original_missing = bool(missing)

    # ---- queries ----------------------------------------------------------- #
    def _state_locked(self, document_id: str) -> ApprovalChainState:
        return ApprovalChainState(
            document=copy.deepcopy(self._docs[document_id]),
            levels=tuple(copy.deepcopy(self._levels[document_id])),
        )

    def get(self, document_id: str) -> Optional[Document]:
        with self._lock:
            doc = self._docs.get(document_id)
            return copy.deepcopy(doc) if doc else None

    def get_state(self, document_id: str) -> Optional[ApprovalChainState]:
        with self._lock:
            if document_id not in self._docs:
                return None
            return self._state_locked(document_id)

    def list_documents(self) -> List[Document]:
        with self._lock:
            docs = [copy.deepcopy(d) for d in self._docs.values()]
        return sorted(docs, key=lambda d: (d.created_at, d.id))

    def list_signatures(self, document_id: str) -> List[SignatureRecord]:
        with self._lock:
            return sorted(self._signatures.get(document_id, []), key=lambda s: s.level)

    def pending_for(self, approver_id: str) -> List[PendingApproval]:
        with self._lock:
            states = [self._state_locked(doc_id) for doc_id in self._docs]
        out = [p for p in (pending_from_state(s, approver_id) for s in states) if p is not None]
        return sorted(out, key=pending_sort_key)

