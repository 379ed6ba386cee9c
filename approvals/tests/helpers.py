"""Roster, chain and service fixtures shared by the approvals tests."""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count
from pathlib import Path
from typing import List, Optional, Sequence

from cryptography.fernet import Fernet

from approvals.adapters.memory_storage_adapter import InMemoryArtifactStore
from approvals.adapters.static_role_directory import StaticRoleDirectory
from approvals.logic.approval_service import ApprovalService
from approvals.logic.chain_policy import ChainPolicy
from approvals.logic.chain_resolver import ApprovalChainResolver
from approvals.models.approval_models import (
    ApprovalChainState,
    ApprovalLevel,
    ApproverSnapshot,
    Document,
    DocumentId,
)
from approvals.models.artifact import ArtifactRef
from approvals.repository.memory_document_repository import InMemoryDocumentRepository
from conversion.models.format_kind import FormatKind
from core.config.config_service import SignatureConfig
from core.contracts.directory import PrincipalInfo
from core.contracts.notifications import DecisionNotice, INotifier
from core.logging.logic.logger import LoggingAuditLogger
from signature.logic.encryption import SignatureVault
from signature.logic.signature_service import SignatureService
from signature.tests.helpers import make_pdf

HEAD_ID = "11"
OTHER_HEAD_ID = "12"
PRINCIPAL_ID = "2"
ADMIN_ID = "3"


def make_directory() -> StaticRoleDirectory:
    return StaticRoleDirectory(
        [
            PrincipalInfo(HEAD_ID, "Hannah Head", "department_head", "science", "Biology"),
            PrincipalInfo(OTHER_HEAD_ID, "Henry Head", "department_head", "languages", "French"),
            PrincipalInfo(PRINCIPAL_ID, "Paula Principal", "principal"),
            PrincipalInfo(ADMIN_ID, "Adam Admin", "admin"),
        ]
    )


class SteppingClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._start = start or datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
        self._ticks = count()

    def __call__(self) -> datetime:
        return self._start + timedelta(minutes=next(self._ticks))


class RecordingNotifier(INotifier):
    def __init__(self) -> None:
        self.submitted: List[dict] = []
        self.decisions: List[DecisionNotice] = []

    def document_submitted(self, *, document_id: str, title: str, first_approver_id: str) -> None:
        self.submitted.append({"document_id": document_id, "title": title, "first_approver_id": first_approver_id})

    def decision_recorded(self, notice: DecisionNotice) -> None:
        self.decisions.append(notice)


class BrokenNotifier(INotifier):
    def document_submitted(self, *, document_id: str, title: str, first_approver_id: str) -> None:
        raise RuntimeError("mail server down")

    def decision_recorded(self, notice: DecisionNotice) -> None:
        raise RuntimeError("mail server down")


class FakePool:
    """Stands in for ConversionWorkerPool: renders every office file as a one-page PDF."""

    def __init__(self) -> None:
        self.calls: List[str] = []

    def convert(self, source: bytes, source_format: str, *, source_name: Optional[str] = None) -> bytes:
        self.calls.append(source_format)
        return make_pdf((f"Converted {source_name}",))


def make_service(
    *,
    repository=None,
    store=None,
    directory: Optional[StaticRoleDirectory] = None,
    pool=None,
    notifier: Optional[INotifier] = None,
    audit: Optional[LoggingAuditLogger] = None,
    max_file_size: int = 10 * 1024 * 1024,
) -> ApprovalService:
    audit = audit if audit is not None else LoggingAuditLogger()
    return ApprovalService(
        repository=repository if repository is not None else InMemoryDocumentRepository(),
        store=store if store is not None else InMemoryArtifactStore(),
        resolver=ApprovalChainResolver(directory or make_directory(), ChainPolicy.load()),
        signatures=SignatureService(
            config=SignatureConfig(key_file=Path("unused")),
            vault=SignatureVault(keys=[Fernet.generate_key()]),
            audit_logger=audit,
        ),
        pool=pool,
        audit_logger=audit,
        notifier=notifier,
        max_file_size=max_file_size,
        clock=SteppingClock(),
    )


def make_state(
    approver_ids: Sequence[str] = (HEAD_ID, PRINCIPAL_ID),
    *,
    document_id: str = "doc-1",
) -> ApprovalChainState:
    """Fresh chain with one awaiting level per approver id."""
    doc_id = DocumentId(document_id)
    document = Document(
        id=doc_id,
        title="Field trip",
        doc_type="field_trip",
        department="science",
        file_name="trip.pdf",
        format_kind=FormatKind.NATIVE_PDF,
        original_artifact=ArtifactRef.original(doc_id),
    )
    levels = tuple(
        ApprovalLevel(
            document_id=doc_id,
            level=i,
            role="department_head" if i == 1 else "principal",
            approver=ApproverSnapshot(principal_id=pid, full_name=f"Approver {pid}"),
        )
        for i, pid in enumerate(approver_ids, start=1)
    )
    return ApprovalChainState(document=document, levels=levels)
