"""
===============================================================================
ApprovalService – submission, decisions and artifacts for routed documents
-------------------------------------------------------------------------------
Submission
    classify upload -> resolve chain -> store original -> create document +
    levels in one repository call

Approve (under the per-document lock)
    guards -> validate signature -> build signable base PDF -> embed ->
    persist signed PDF + encrypted signature image -> commit decision.
    Anything failing before the commit leaves the level awaiting; artifacts
    written by a failed attempt are removed again.

Reject / request revision (under the per-document lock)
    guards -> comment required -> commit decision. No embedding.

Reads (preview, downloads, chain, signatures, pending lists) take no locks.
Notifications and audit events are best effort: a failing sink is logged and
never undoes a committed decision.
===============================================================================
"""
from __future__ import annotations

import hashlib
import logging
import uuid
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional, Union

from approvals.adapters.storage_adapter import ArtifactStore
from approvals.enum.document_status import DocumentStatus
from approvals.enum.priority import Priority
from approvals.exceptions.errors import (
    EmptyFileError,
    FileTooLargeError,
    InvalidStateError,
    MissingArtifactError,
    NotPreviewableError,
    NotYetApprovedError,
    UnknownDocumentError,
)
from approvals.logic.chain_policy import ChainPolicy
from approvals.logic.chain_resolver import ApprovalChainResolver
from approvals.logic.document_locks import DocumentLockRegistry
from approvals.logic.state_machine import ApprovalStateMachine, summarize
from approvals.models.approval_models import (
    ApprovalChainEntry,
    ApprovalChainState,
    ApprovalLevel,
    ApproverSnapshot,
    Document,
    DocumentId,
    DownloadArtifact,
    PendingApproval,
    SignatureRecord,
    utcnow,
)
from approvals.models.artifact import ArtifactRef
from approvals.repository.document_repository import DocumentRepository
from conversion.exceptions.errors import RendererUnavailableError
from conversion.logic.format_classifier import ensure_supported, extension_of, media_type_for
from conversion.logic.native_renderer import image_to_pdf, text_to_pdf
from conversion.logic.worker_pool import ConversionWorkerPool
from conversion.models.format_kind import FormatKind
from core.config.config_service import AppConfig
from core.contracts.audit import IAuditLogger
from core.contracts.directory import IRoleDirectory
from core.contracts.notifications import DecisionNotice, INotifier
from core.exceptions.errors import ValidationError
from signature.exceptions.errors import EmptySignatureError
from signature.logic.encryption import SignatureVault
from signature.logic.signature_service import SignatureService
from signature.models.signature_image import SignatureImage
from signature.models.signature_placement import SignaturePlacement

logger = logging.getLogger(__name__)

_FEATURE = "Approvals"

SignatureInput = Union[SignatureImage, bytes, str, None]


class ApprovalService:
    """Orchestrates the approval chain and the signed artifact of each document."""

    def __init__(
        self,
        *,
        repository: DocumentRepository,
        store: ArtifactStore,
        resolver: ApprovalChainResolver,
        signatures: SignatureService,
        pool: Optional[ConversionWorkerPool] = None,
        locks: Optional[DocumentLockRegistry] = None,
        audit_logger: Optional[IAuditLogger] = None,
        notifier: Optional[INotifier] = None,
        max_file_size: int = 10 * 1024 * 1024,
        clock: Callable[[], Any] = utcnow,
    ) -> None:
        self._repo = repository
        self._store = store
        self._resolver = resolver
        self._signatures = signatures
        self._pool = pool
        self._locks = locks or DocumentLockRegistry()
        self._audit_logger = audit_logger
        self._notifier = notifier
        self._max_file_size = int(max_file_size)
        self._clock = clock
        self._fsm = ApprovalStateMachine()

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        repository: DocumentRepository,
        store: ArtifactStore,
        directory: IRoleDirectory,
        pool: Optional[ConversionWorkerPool] = None,
        audit_logger: Optional[IAuditLogger] = None,
        notifier: Optional[INotifier] = None,
    ) -> "ApprovalService":
        policy = ChainPolicy.load(config.workflow.chain_policy_file or None)
        return cls(
            repository=repository,
            store=store,
            resolver=ApprovalChainResolver(directory, policy),
            signatures=SignatureService(
                config=config.signature,
                vault=SignatureVault(config.signature.key_file),
                audit_logger=audit_logger,
            ),
            pool=pool,
            locks=DocumentLockRegistry(timeout=config.workflow.lock_timeout_seconds),
            audit_logger=audit_logger,
            notifier=notifier,
            max_file_size=config.intake.max_file_size_bytes,
        )

    # ------------------------------------------------------------------ #
    #  Submission                                                        #
    # ------------------------------------------------------------------ #
    def submit_document(
        self,
        title: str,
        doc_type: str,
        department: Optional[str],
        file_bytes: bytes,
        file_name: str,
        *,
        submitted_by: Optional[str] = None,
        priority: Union[Priority, str] = Priority.MEDIUM,
    ) -> DocumentId:
        """Create a document and its full approval chain; return the new id."""
        return self._submit(
            title=title,
            doc_type=doc_type,
            department=department,
            file_bytes=file_bytes,
            file_name=file_name,
            submitted_by=submitted_by,
            priority=priority,
            supersedes=None,
        )

    def resubmit_document(
        self,
        document_id: str,
        file_bytes: bytes,
        file_name: str,
        *,
        submitted_by: Optional[str] = None,
    ) -> DocumentId:
        """
        Submit a reworked file for a document whose revision was requested.
        The old document and its history stay untouched; a new document with
        a freshly resolved chain points back to it through ``supersedes``.
        """
        old = self._require(document_id)
        if old.status is not DocumentStatus.REVISION_REQUESTED:
            raise InvalidStateError(
                f"Document {document_id} is {old.status.value}; only documents with a requested "
                "revision can be resubmitted."
            )
        return self._submit(
            title=old.title,
            doc_type=old.doc_type,
            department=old.department,
            file_bytes=file_bytes,
            file_name=file_name,
            submitted_by=submitted_by or old.submitted_by,
            priority=old.priority,
            supersedes=old.id,
        )

    def _submit(
        self,
        *,
        title: str,
        doc_type: str,
        department: Optional[str],
        file_bytes: bytes,
        file_name: str,
        submitted_by: Optional[str],
        priority: Union[Priority, str],
        supersedes: Optional[DocumentId],
    ) -> DocumentId:
        title = (title or "").strip()
        if not title:
            raise ValidationError("A document title is required.")
        if not (doc_type or "").strip():
            raise ValidationError("A document type is required.")
        if not file_bytes:
            raise EmptyFileError(f"Uploaded file '{file_name}' is empty.")
        if len(file_bytes) > self._max_file_size:
            raise FileTooLargeError(len(file_bytes), self._max_file_size)
        kind = ensure_supported(file_name)
        try:
            prio = Priority(priority)
        except ValueError:
            raise ValidationError(f"Unknown priority '{priority}'.") from None

        chain = self._resolver.resolve(doc_type, department)

        doc_id = DocumentId(uuid.uuid4().hex)
        now = self._clock()
        original = ArtifactRef.original(doc_id)
        document = Document(
            id=doc_id,
            title=title,
            doc_type=doc_type.strip(),
            department=department,
            file_name=PurePath(file_name).name,
            format_kind=kind,
            original_artifact=original,
            submitted_by=submitted_by,
            priority=prio,
            supersedes=supersedes,
            created_at=now,
            updated_at=now,
        )
        levels = [
            ApprovalLevel(
                document_id=doc_id,
                level=entry.level,
                role=entry.role,
                approver=ApproverSnapshot.of(entry.principal),
            )
            for entry in chain
        ]

        self._store.put(original, bytes(file_bytes))
        try:
            self._repo.create(document, levels)
        except BaseException:
            self._discard([original])
            raise

        logger.info(
            "Document %s submitted (%s, %s, %s level(s))", doc_id, doc_type, kind.value, len(levels)
        )
        self._audit(
            "document_resubmitted" if supersedes else "document_submitted",
            user_id=submitted_by,
            reference_id=doc_id,
            message=title,
            data={
                "doc_type": doc_type,
                "department": department,
                "file_name": document.file_name,
                "format_kind": kind.value,
                "size": len(file_bytes),
                "chain": [f"{e.role}:{e.principal.principal_id}" for e in chain],
                "supersedes": supersedes,
            },
        )
        self._notify(
            "document_submitted",
            document_id=doc_id,
            title=title,
            first_approver_id=chain[0].principal.principal_id,
        )
        return doc_id

    # ------------------------------------------------------------------ #
    #  Decisions                                                         #
    # ------------------------------------------------------------------ #
    def approve(
        self,
        document_id: str,
        approver_id: str,
        signature_image: SignatureInput,
        comment: Optional[str] = None,
        *,
        placement: Optional[SignaturePlacement] = None,
        level: Optional[int] = None,
    ) -> ApprovalChainState:
        with self._locks.hold(document_id):
            state = self._require_state(document_id)
            lvl_no = level if level is not None else self._fsm.level_for(state, approver_id)
            target = self._fsm.check(state, lvl_no, approver_id)
            image = self._coerce_signature(signature_image)

            doc = state.document
            base_pdf = (
                self._store.get(doc.signed_artifact)
                if doc.signed_artifact is not None
                else self._signable_base(doc)
            )
            signed_at = self._clock()
            stamp = self._signatures.stamp(
                image,
                base_pdf=base_pdf,
                slot=lvl_no - 1,
                full_name=target.approver.full_name,
                role=target.role,
                signed_at=signed_at,
                placement=placement,
            )
            signed_pdf = self._signatures.sign_pdf(
                base_pdf, [stamp], reference_id=doc.id, user_id=str(approver_id)
            )

            signature_id = uuid.uuid4().hex
            tag = signature_id[:12]
            signed_ref = ArtifactRef.signed(doc.id, lvl_no, tag)
            image_ref = ArtifactRef.signature_image(doc.id, lvl_no, tag)
            written: List[ArtifactRef] = []
            try:
                self._store.put(signed_ref, signed_pdf)
                written.append(signed_ref)
                self._store.put(image_ref, self._signatures.seal_image(image))
                written.append(image_ref)

                record = SignatureRecord(
                    id=signature_id,
                    document_id=doc.id,
                    level=lvl_no,
                    image=image_ref,
                    image_mime=image.mime_type,
                    principal_id=target.approver.principal_id,
                    full_name=target.approver.full_name,
                    role=target.role,
                    department=target.approver.department,
                    subject=target.approver.subject,
                    artifact_sha256=_sha256(signed_pdf),
                    signed_artifact=signed_ref,
                    signed_at=signed_at,
                )
                decided = self._fsm.decide_approve(
                    state,
                    lvl_no,
                    approver_id,
                    signature_id=signature_id,
                    signed_artifact=signed_ref,
                    comment=comment,
                    decided_at=signed_at,
                )
                stored = self._repo.commit_decision(
                    decided, expected_version=doc.version, signature=record
                )
            except BaseException:
                self._discard(written)
                raise

        logger.info("Document %s level %s approved by %s %s", doc.id, lvl_no, approver_id, summarize(stored))
        self._audit(
            "level_approved",
            user_id=str(approver_id),
            reference_id=doc.id,
            message=comment or "",
            data={
                "level": lvl_no,
                "signature_id": signature_id,
                "artifact_sha256": record.artifact_sha256,
                "status": stored.document.status.value,
            },
        )
        self._notify_decision(stored, lvl_no, "approved", str(approver_id), comment)
        return stored

    def reject(self, document_id: str, approver_id: str, comment: Optional[str], *, level: Optional[int] = None) -> ApprovalChainState:
        with self._locks.hold(document_id):
            state = self._require_state(document_id)
            lvl_no = level if level is not None else self._fsm.level_for(state, approver_id)
            decided = self._fsm.decide_reject(state, lvl_no, approver_id, comment, decided_at=self._clock())
            stored = self._repo.commit_decision(decided, expected_version=state.document.version)

        logger.info("Document %s rejected at level %s by %s", document_id, lvl_no, approver_id)
        self._audit(
            "level_rejected",
            user_id=str(approver_id),
            reference_id=document_id,
            message=stored.level(lvl_no).comment or "",
            data={"level": lvl_no, "status": stored.document.status.value},
        )
        self._notify_decision(stored, lvl_no, "rejected", str(approver_id), comment)
        return stored

    def request_revision(
        self, document_id: str, approver_id: str, comment: Optional[str], *, level: Optional[int] = None
    ) -> ApprovalChainState:
        with self._locks.hold(document_id):
            state = self._require_state(document_id)
            lvl_no = level if level is not None else self._fsm.level_for(state, approver_id)
            decided = self._fsm.decide_request_revision(
                state, lvl_no, approver_id, comment, decided_at=self._clock()
            )
            stored = self._repo.commit_decision(decided, expected_version=state.document.version)

        logger.info("Revision requested for document %s at level %s by %s", document_id, lvl_no, approver_id)
        self._audit(
            "revision_requested",
            user_id=str(approver_id),
            reference_id=document_id,
            message=stored.level(lvl_no).comment or "",
            data={"level": lvl_no, "status": stored.document.status.value},
        )
        self._notify_decision(stored, lvl_no, "revision_requested", str(approver_id), comment)
        return stored

    # ------------------------------------------------------------------ #
    #  Artifacts                                                         #
    # ------------------------------------------------------------------ #
    def get_preview_artifact(self, document_id: str) -> bytes:
        """PDF rendition of the upload, converting (and caching) it if needed."""
        return self._signable_base(self._require(document_id))

    def get_signed_artifact(self, document_id: str) -> bytes:
        doc = self._require(document_id)
        if doc.status is not DocumentStatus.APPROVED or doc.signed_artifact is None:
            raise NotYetApprovedError(
                f"Document {document_id} is {doc.status.value}; the signed file is available once every "
                "level has approved."
            )
        return self._store.get(doc.signed_artifact)

    def get_signed_download(self, document_id: str) -> DownloadArtifact:
        content = self.get_signed_artifact(document_id)
        doc = self._require(document_id)
        stem = PurePath(doc.file_name).stem or "document"
        return DownloadArtifact(
            content=content,
            file_name=f"{stem}_signed.pdf",
            media_type="application/pdf",
            original_file_name=doc.file_name,
            original_format=doc.format_kind,
        )

    def get_original_artifact(self, document_id: str) -> bytes:
        return self._original(self._require(document_id))

    def get_original_download(self, document_id: str) -> DownloadArtifact:
        """The upload exactly as submitted, labelled with its own name and media type."""
        doc = self._require(document_id)
        return DownloadArtifact(
            content=self._original(doc),
            file_name=doc.file_name,
            media_type=media_type_for(doc.file_name),
            original_file_name=doc.file_name,
            original_format=doc.format_kind,
        )

    # ------------------------------------------------------------------ #
    #  Queries                                                           #
    # ------------------------------------------------------------------ #
    def get_approval_chain(self, document_id: str) -> List[ApprovalChainEntry]:
        state = self._require_state(document_id)
        return [
            ApprovalChainEntry(
                level=lvl.level,
                approver_id=lvl.approver.principal_id,
                approver_name=lvl.approver.full_name,
                role=lvl.role,
                status=lvl.status,
                comment=lvl.comment,
                decided_at=lvl.decided_at,
                signed=lvl.signature_id is not None,
            )
            for lvl in state.levels
        ]

    def get_document(self, document_id: str) -> Document:
        return self._require(document_id)

    def list_signatures(self, document_id: str) -> List[SignatureRecord]:
        self._require(document_id)
        return self._repo.list_signatures(document_id)

    def pending_for_approver(self, approver_id: str) -> List[PendingApproval]:
        return self._repo.pending_for(str(approver_id))

    def scan_missing_originals(self) -> List[DocumentId]:
        """
        Check every document's original upload. Flags documents whose file is
        gone (and clears the flag for restored ones); returns the flagged ids.
        """
        missing: List[DocumentId] = []
        for doc in self._repo.list_documents():
            present = self._store.exists(doc.original_artifact)
            if present == doc.original_missing:
                self._repo.set_original_missing(doc.id, not present)
                if not present:
                    self._audit("original_missing", reference_id=doc.id, data={"key": doc.original_artifact.key})
            if not present:
                missing.append(doc.id)
        if missing:
            logger.warning("%s document(s) are missing their original upload", len(missing))
        return missing

    # ------------------------------------------------------------------ #
    #  Internals                                                         #
    # ------------------------------------------------------------------ #
    def _require(self, document_id: str) -> Document:
        doc = self._repo.get(document_id)
        if doc is None:
            raise UnknownDocumentError(document_id)
        return doc

    def _require_state(self, document_id: str) -> ApprovalChainState:
        state = self._repo.get_state(document_id)
        if state is None:
            raise UnknownDocumentError(document_id)
        return state

    @staticmethod
    def _coerce_signature(value: SignatureInput) -> SignatureImage:
        if isinstance(value, SignatureImage):
            return value
        if value is None:
            raise EmptySignatureError("A signature image is required to approve.")
        if isinstance(value, str):
            return SignatureImage.from_data_url(value)
        return SignatureImage.from_bytes(bytes(value))

    def _original(self, doc: Document) -> bytes:
        try:
            data = self._store.get(doc.original_artifact)
        except MissingArtifactError:
            if not doc.original_missing:
                self._repo.set_original_missing(doc.id, True)
                self._audit("original_missing", reference_id=doc.id, data={"key": doc.original_artifact.key})
            raise MissingArtifactError(
                doc.original_artifact.key,
                f"The original file of document {doc.id} is no longer stored; "
                "please ask the submitter to upload it again.",
            ) from None
        if doc.original_missing:
            self._repo.set_original_missing(doc.id, False)
        return data

    def _signable_base(self, doc: Document) -> bytes:
        """PDF the preview shows and the first signature is embedded into."""
        kind = doc.format_kind
        if kind is FormatKind.NATIVE_PDF:
            return self._original(doc)
        if not kind.is_supported:
            raise NotPreviewableError(f"Files of type '{extension_of(doc.file_name)}' cannot be previewed.")

        cached = ArtifactRef.converted(doc.id)
        if self._store.exists(cached):
            return self._store.get(cached)

        source = self._original(doc)
        if kind is FormatKind.NATIVE_IMAGE:
            pdf = image_to_pdf(source)
        elif kind is FormatKind.NATIVE_TEXT:
            pdf = text_to_pdf(source)
        else:
            if self._pool is None:
                raise RendererUnavailableError("No document renderer is configured for office formats.")
            pdf = self._pool.convert(source, extension_of(doc.file_name), source_name=doc.file_name)

        self._store.put(cached, pdf)
        logger.info("Cached PDF rendition of document %s (%s, %s bytes)", doc.id, kind.value, len(pdf))
        return pdf

    def _discard(self, refs: List[ArtifactRef]) -> None:
        for ref in refs:
            try:
                self._store.delete(ref)
            except Exception:
                logger.exception("Could not remove orphaned artifact %s", ref.key)

    def _audit(
        self,
        event: str,
        *,
        user_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        message: str = "",
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        if self._audit_logger is None:
            return
        try:
            self._audit_logger.log(
                _FEATURE, event, user_id=user_id, reference_id=reference_id, message=message, data=data
            )
        except Exception:
            logger.exception("Audit event %s for %s could not be written", event, reference_id)

    def _notify(self, method: str, *args: Any, **kwargs: Any) -> None:
        if self._notifier is None:
            return
        try:
            getattr(self._notifier, method)(*args, **kwargs)
        except Exception:
            logger.exception("Notification %s failed", method)

    def _notify_decision(
        self, state: ApprovalChainState, level: int, decision: str, decided_by: str, comment: Optional[str]
    ) -> None:
        doc = state.document
        nxt = state.current_level if doc.status.is_open else None
        self._notify(
            "decision_recorded",
            DecisionNotice(
                document_id=doc.id,
                title=doc.title,
                level=level,
                decision=decision,
                decided_by=decided_by,
                comment=comment,
                next_approver_id=nxt.approver.principal_id if nxt else None,
                submitted_by=doc.submitted_by,
                final=doc.status.is_terminal,
            ),
        )


def _sha256(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()
