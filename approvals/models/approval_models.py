"""
Approval domain models.

Keeps the data layer independent from storage, rendering and transport.
Documents and levels are mutable records owned by the repository; signature
records are immutable history.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import NewType, Optional, Tuple

from approvals.enum.document_status import DocumentStatus
from approvals.enum.level_status import LevelStatus
from approvals.enum.priority import Priority
from approvals.models.artifact import ArtifactRef
from conversion.models.format_kind import FormatKind
from core.contracts.directory import PrincipalInfo

DocumentId = NewType("DocumentId", str)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ApproverSnapshot:
    """Who was resolved for a level, frozen at submission time."""
    principal_id: str
    full_name: str
    department: Optional[str] = None
    subject: Optional[str] = None

    @classmethod
    def of(cls, info: PrincipalInfo) -> "ApproverSnapshot":
        return cls(info.principal_id, info.full_name, info.department, info.subject)


@dataclass
class Document:
    id: DocumentId
    title: str
    doc_type: str
    department: Optional[str]
    file_name: str
    format_kind: FormatKind
    original_artifact: ArtifactRef
    status: DocumentStatus = DocumentStatus.PENDING
    signed_artifact: Optional[ArtifactRef] = None
    submitted_by: Optional[str] = None
    priority: Priority = Priority.MEDIUM
    supersedes: Optional[DocumentId] = None
    original_missing: bool = False
    version: int = 0
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass
class ApprovalLevel:
    document_id: DocumentId
    level: int
    role: str
    approver: ApproverSnapshot
    status: LevelStatus = LevelStatus.AWAITING
    comment: Optional[str] = None
    signature_id: Optional[str] = None
    decided_at: Optional[datetime] = None


@dataclass(frozen=True)
class SignatureRecord:
    id: str
    document_id: DocumentId
    level: int
    image: ArtifactRef
    image_mime: str
    principal_id: str
    full_name: str
    role: str
    department: Optional[str]
    subject: Optional[str]
    artifact_sha256: str
    signed_artifact: ArtifactRef
    signed_at: datetime


@dataclass(frozen=True)
class ChainEntry:
    """One resolved step of an approval chain."""
    level: int
    role: str
    principal: PrincipalInfo


@dataclass(frozen=True)
class ApprovalChainState:
    """A document together with all of its levels, ordered by level."""
    document: Document
    levels: Tuple[ApprovalLevel, ...]

    def level(self, number: int) -> Optional[ApprovalLevel]:
        for lvl in self.levels:
            if lvl.level == number:
                return lvl
        return None

    @property
    def current_level(self) -> Optional[ApprovalLevel]:
        """First level still awaiting a decision, or None when the chain is done."""
        for lvl in self.levels:
            if lvl.status is LevelStatus.AWAITING:
                return lvl
        return None

    @property
    def approved_levels(self) -> Tuple[ApprovalLevel, ...]:
        return tuple(lvl for lvl in self.levels if lvl.status is LevelStatus.APPROVED)


@dataclass(frozen=True)
class ApprovalChainEntry:
    """Read model for displaying a document's chain."""
    level: int
    approver_id: str
    approver_name: str
    role: str
    status: LevelStatus
    comment: Optional[str] = None
    decided_at: Optional[datetime] = None
    signed: bool = False


@dataclass(frozen=True)
class PendingApproval:
    document_id: DocumentId
    title: str
    doc_type: str
    department: Optional[str]
    level: int
    role: str
    priority: Priority
    submitted_by: Optional[str]
    submitted_at: datetime


@dataclass(frozen=True)
class DownloadArtifact:
    """Downloadable bytes labelled with their file name, media type and what was uploaded."""
    content: bytes
    file_name: str
    media_type: str
    original_file_name: str
    original_format: FormatKind
