"""SQLite implementation of DocumentRepository.

Lightweight repository - only persistence and simple queries.
Workflow rules live in ``approvals.logic``.

Every write runs in one ``BEGIN IMMEDIATE`` transaction; decision commits
compare-and-swap on ``documents.version`` so that two processes sharing the
database cannot both decide from the same snapshot.
"""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from approvals.enum.document_status import DocumentStatus
from approvals.enum.level_status import LevelStatus
from approvals.enum.priority import Priority
from approvals.exceptions.errors import ConcurrentModificationError, UnknownDocumentError
from approvals.models.approval_models import (
    ApprovalChainState,
    ApprovalLevel,
    ApproverSnapshot,
    Document,
    DocumentId,
    PendingApproval,
    SignatureRecord,
)
from approvals.models.artifact import ArtifactRef
from approvals.repository.document_repository import DocumentRepository, pending_from_state, pending_sort_key
from conversion.models.format_kind import FormatKind
from core.common.db_interface import SQLiteDatabase

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    id TEXT PRIMARY KEY,
    title TEXT NOT NULL,
    doc_type TEXT NOT NULL,
    department TEXT,
    status TEXT NOT NULL,
    file_name TEXT NOT NULL,
    format_kind TEXT NOT NULL,
    original_ref TEXT NOT NULL,
    signed_ref TEXT,
    submitted_by TEXT,
    priority TEXT NOT NULL DEFAULT 'medium',
    supersedes TEXT,
    original_missing INTEGER NOT NULL DEFAULT 0,
    version INTEGER NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS approval_levels (
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    level INTEGER NOT NULL CHECK (level >= 1),
    role TEXT NOT NULL,
    approver_id TEXT NOT NULL,
    approver_name TEXT NOT NULL,
    approver_department TEXT,
    approver_subject TEXT,
    status TEXT NOT NULL,
    comment TEXT,
    signature_id TEXT,
    decided_at TEXT,
    PRIMARY KEY (document_id, level)
);

CREATE INDEX IF NOT EXISTS idx_levels_approver ON approval_levels (approver_id, status);

CREATE TABLE IF NOT EXISTS signatures (
    id TEXT PRIMARY KEY,
    document_id TEXT NOT NULL REFERENCES documents(id) ON DELETE CASCADE,
    level INTEGER NOT NULL,
    image_ref TEXT NOT NULL,
    image_mime TEXT NOT NULL,
    principal_id TEXT NOT NULL,
    full_name TEXT NOT NULL,
    role TEXT NOT NULL,
    department TEXT,
    subject TEXT,
    artifact_sha256 TEXT NOT NULL,
    signed_ref TEXT NOT NULL,
    signed_at TEXT NOT NULL,
    UNIQUE (document_id, level)
);
"""


def _ts(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SQLiteDocumentRepository(DocumentRepository):
    """SQLite backend for approval data."""

    def __init__(self, db_path: Path | str, *, db: Optional[SQLiteDatabase] = None) -> None:
        """
        Args:
            db_path: Database file (``":memory:"`` for a private in-memory db)
            db: Shared database handle (default: a new SQLiteDatabase)
        """
        self._db = db or SQLiteDatabase(db_path)
        self._ensure_schema()

    # =========================================================================
    # Schema Management
    # =========================================================================

    def _ensure_schema(self) -> None:
        with self._db.reading() as conn:
            conn.executescript(_SCHEMA)

    def close(self) -> None:
        self._db.close()

    # =========================================================================
    # Row mapping
    # =========================================================================

    @staticmethod
    def _row_to_document(row: sqlite3.Row) -> Document:
        return Document(
            id=DocumentId(row["id"]),
            title=row["title"],
            doc_type=row["doc_type"],
            department=row["department"],
            file_name=row["file_name"],
            format_kind=FormatKind(row["format_kind"]),
            original_artifact=ArtifactRef.parse(row["original_ref"]),
            status=DocumentStatus(row["status"]),
            signed_artifact=ArtifactRef.parse(row["signed_ref"]) if row["signed_ref"] else None,
            submitted_by=row["submitted_by"],
            priority=Priority(row["priority"]),
            supersedes=DocumentId(row["supersedes"]) if row["supersedes"] else None,
            original_missing=bool(row["original_missing"]),
            version=int(row["version"]),
            created_at=_dt(row["created_at"]),
            updated_at=_dt(row["updated_at"]),
        )

    @staticmethod
    def _row_to_level(row: sqlite3.Row) -> ApprovalLevel:
        return ApprovalLevel(
            document_id=DocumentId(row["document_id"]),
            level=int(row["level"]),
            role=row["role"],
            approver=ApproverSnapshot(
                principal_id=row["approver_id"],
                full_name=row["approver_name"],
                department=row["approver_department"],
                subject=row["approver_subject"],
            ),
            status=LevelStatus(row["status"]),
            comment=row["comment"],
            signature_id=row["signature_id"],
            decided_at=_dt(row["decided_at"]),
        )

    @staticmethod
    def _row_to_signature(row: sqlite3.Row) -> SignatureRecord:
        return SignatureRecord(
            id=row["id"],
            document_id=DocumentId(row["document_id"]),
            level=int(row["level"]),
            image=ArtifactRef.parse(row["image_ref"]),
            image_mime=row["image_mime"],
            principal_id=row["principal_id"],
            full_name=row["full_name"],
            role=row["role"],
            department=row["department"],
            subject=row["subject"],
            artifact_sha256=row["artifact_sha256"],
            signed_artifact=ArtifactRef.parse(row["signed_ref"]),
            signed_at=_dt(row["signed_at"]),
        )

    @staticmethod
    def _level_params(lvl: ApprovalLevel) -> Dict[str, Any]:
        return {
            "document_id": lvl.document_id,
            "level": lvl.level,
            "role": lvl.role,
            "approver_id": lvl.approver.principal_id,
            "approver_name": lvl.approver.full_name,
            "approver_department": lvl.approver.department,
            "approver_subject": lvl.approver.subject,
            "status": lvl.status.value,
            "comment": lvl.comment,
            "signature_id": lvl.signature_id,
            "decided_at": _ts(lvl.decided_at),
        }

    # =========================================================================
    # Lifecycle Operations
    # =========================================================================

    def create(self, document: Document, levels: Sequence[ApprovalLevel]) -> ApprovalChainState:
        with self._db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO documents (id, title, doc_type, department, status, file_name, format_kind,
                                       original_ref, signed_ref, submitted_by, priority, supersedes,
                                       original_missing, version, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    document.id,
                    document.title,
                    document.doc_type,
                    document.department,
                    document.status.value,
                    document.file_name,
                    document.format_kind.value,
                    document.original_artifact.key,
                    document.signed_artifact.key if document.signed_artifact else None,
                    document.submitted_by,
                    document.priority.value,
                    document.supersedes,
                    int(document.original_missing),
                    document.version,
                    _ts(document.created_at),
                    _ts(document.updated_at),
                ),
            )
            conn.executemany(
                """
                INSERT INTO approval_levels (document_id, level, role, approver_id, approver_name,
                                             approver_department, approver_subject, status, comment,
                                             signature_id, decided_at)
                VALUES (:document_id, :level, :role, :approver_id, :approver_name, :approver_department,
                        :approver_subject, :status, :comment, :signature_id, :decided_at)
                """,
                [self._level_params(lvl) for lvl in levels],
            )
        logger.debug("Stored document %s with %s level(s)", document.id, len(levels))
        state = self.get_state(document.id)
        if state is None:
            raise UnknownDocumentError(document.id)
        return state

    def commit_decision(
        self,
        state: ApprovalChainState,
        *,
        expected_version: int,
        signature: Optional[SignatureRecord] = None,
    ) -> ApprovalChainState:
        doc = state.document
        with self._db.transaction() as conn:
            cur = conn.execute(
                """
                UPDATE documents
                   SET status = ?, signed_ref = ?, updated_at = ?, version = version + 1
                 WHERE id = ? AND version = ?
                """,
                (
                    doc.status.value,
                    doc.signed_artifact.key if doc.signed_artifact else None,
                    _ts(doc.updated_at),
                    doc.id,
                    expected_version,
                ),
            )
            if cur.rowcount != 1:
                exists = conn.execute("SELECT version FROM documents WHERE id = ?", (doc.id,)).fetchone()
                if exists is None:
                    raise UnknownDocumentError(doc.id)
                raise ConcurrentModificationError(
                    f"Document {doc.id} changed (version {exists['version']}, expected {expected_version})."
                )
            conn.executemany(
                """
                UPDATE approval_levels
                   SET status = :status, comment = :comment, signature_id = :signature_id,
                       decided_at = :decided_at
                 WHERE document_id = :document_id AND level = :level
                """,
                [self._level_params(lvl) for lvl in state.levels],
            )
            if signature is not None:
                conn.execute(
                    """
                    INSERT INTO signatures (id, document_id, level, image_ref, image_mime, principal_id,
                                            full_name, role, department, subject, artifact_sha256,
                                            signed_ref, signed_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        signature.id,
                        signature.document_id,
                        signature.level,
                        signature.image.key,
                        signature.image_mime,
                        signature.principal_id,
                        signature.full_name,
                        signature.role,
                        signature.department,
                        signature.subject,
                        signature.artifact_sha256,
                        signature.signed_artifact.key,
                        _ts(signature.signed_at),
                    ),
                )
        stored = self.get_state(doc.id)
        if stored is None:
            raise UnknownDocumentError(doc.id)
        return stored

    def set_original_missing(self, document_id: str, missing: bool) -> None:
        with self._db.transaction() as conn:
            cur = conn.execute(
                "UPDATE documents SET original_missing = ? WHERE id = ?", (int(bool(missing)), document_id)
            )
            if cur.rowcount != 1:
                raise UnknownDocumentError(document_id)

    # =========================================================================
    # Query Operations
    # =========================================================================

    def get(self, document_id: str) -> Optional[Document]:
        with self._db.reading() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
        return self._row_to_document(row) if row else None

    def get_state(self, document_id: str) -> Optional[ApprovalChainState]:
        with self._db.reading() as conn:
            row = conn.execute("SELECT * FROM documents WHERE id = ?", (document_id,)).fetchone()
            if row is None:
                return None
            level_rows = conn.execute(
                "SELECT * FROM approval_levels WHERE document_id = ? ORDER BY level", (document_id,)
            ).fetchall()
        return ApprovalChainState(
            document=self._row_to_document(row),
            levels=tuple(self._row_to_level(r) for r in level_rows),
        )

    def list_documents(self) -> List[Document]:
        with self._db.reading() as conn:
            rows = conn.execute("SELECT * FROM documents ORDER BY created_at, id").fetchall()
        return [self._row_to_document(r) for r in rows]

    def list_signatures(self, document_id: str) -> List[SignatureRecord]:
        with self._db.reading() as conn:
            rows = conn.execute(
                "SELECT * FROM signatures WHERE document_id = ? ORDER BY level", (document_id,)
            ).fetchall()
        return [self._row_to_signature(r) for r in rows]

    def pending_for(self, approver_id: str) -> List[PendingApproval]:
        with self._db.reading() as conn:
            ids = [
                r["document_id"]
                for r in conn.execute(
                    """
                    SELECT DISTINCT l.document_id
                      FROM approval_levels l JOIN documents d ON d.id = l.document_id
                     WHERE l.approver_id = ? AND l.status = ? AND d.status IN (?, ?)
                    """,
                    (
                        str(approver_id),
                        LevelStatus.AWAITING.value,
                        DocumentStatus.PENDING.value,
                        DocumentStatus.IN_REVIEW.value,
                    ),
                ).fetchall()
            ]
        out: List[PendingApproval] = []
        for doc_id in ids:
            state = self.get_state(doc_id)
            item = pending_from_state(state, approver_id) if state else None
            if item is not None:
                out.append(item)
        return sorted(out, key=pending_sort_key)
