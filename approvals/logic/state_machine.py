# approvals/logic/state_machine.py
"""
Approval state machine.

- Stateless: pure guard and transition logic, no storage or rendering here.
- Level transitions and document transitions are declared as tables.
- The document status is always derived from the level statuses, never set
  on its own.

Guards run in a fixed order so that callers get the most specific error:

    InvalidLevelError -> OutOfSequenceError -> AlreadyDecidedError

Payload checks (comment, signature) only run once the guards passed.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from approvals.enum.document_status import DocumentStatus
from approvals.enum.level_status import LevelStatus
from approvals.exceptions.errors import (
    AlreadyDecidedError,
    CommentRequiredError,
    InvalidLevelError,
    InvalidStateError,
    OutOfSequenceError,
)
from approvals.models.approval_models import ApprovalChainState, ApprovalLevel, utcnow
from approvals.models.artifact import ArtifactRef


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"


LEVEL_TRANSITIONS: Mapping[LevelStatus, Mapping[Decision, LevelStatus]] = {
    LevelStatus.AWAITING: {
        Decision.APPROVE: LevelStatus.APPROVED,
        Decision.REJECT: LevelStatus.REJECTED,
        Decision.REQUEST_REVISION: LevelStatus.REVISION_REQUESTED,
    },
    LevelStatus.APPROVED: {},
    LevelStatus.REJECTED: {},
    LevelStatus.REVISION_REQUESTED: {},
}

_ANY_OUTCOME: FrozenSet[DocumentStatus] = frozenset(
    {
        DocumentStatus.IN_REVIEW,
        DocumentStatus.APPROVED,
        DocumentStatus.REJECTED,
        DocumentStatus.REVISION_REQUESTED,
    }
)

DOCUMENT_TRANSITIONS: Mapping[DocumentStatus, FrozenSet[DocumentStatus]] = {
    DocumentStatus.PENDING: _ANY_OUTCOME,
    DocumentStatus.IN_REVIEW: _ANY_OUTCOME,
    DocumentStatus.APPROVED: frozenset(),
    DocumentStatus.REJECTED: frozenset(),
    DocumentStatus.REVISION_REQUESTED: frozenset(),
}


def derive_document_status(levels: Iterable[ApprovalLevel]) -> DocumentStatus:
    statuses = [lvl.status for lvl in levels]
    if not statuses:
        return DocumentStatus.PENDING
    if any(s is LevelStatus.REJECTED for s in statuses):
        return DocumentStatus.REJECTED
    if any(s is LevelStatus.REVISION_REQUESTED for s in statuses):
        return DocumentStatus.REVISION_REQUESTED
    if all(s is LevelStatus.APPROVED for s in statuses):
        return DocumentStatus.APPROVED
    if any(s is LevelStatus.APPROVED for s in statuses):
        return DocumentStatus.IN_REVIEW
    return DocumentStatus.PENDING


def _clean_comment(comment: Optional[str]) -> Optional[str]:
    text = (comment or "").strip()
    return text or None


class ApprovalStateMachine:
    """Validates decisions and computes the resulting chain state."""

    # ----------------- Guards -------------------------------------------------
    @staticmethod
    def check(state: ApprovalChainState, level: int, actor_id: str) -> ApprovalLevel:
        """Run the guards for *actor_id* deciding *level*; return that level."""
        target = state.level(level)
        if target is None:
            raise InvalidLevelError(f"Document {state.document.id} has no approval level {level}.")
        if str(target.approver.principal_id) != str(actor_id):
            raise InvalidLevelError(
                f"User {actor_id} is not the approver for level {level} of document {state.document.id}."
            )
        for earlier in state.levels:
            if earlier.level < level and earlier.status is not LevelStatus.APPROVED:
                raise OutOfSequenceError(
                    f"Level {level} cannot act before level {earlier.level} is approved "
                    f"(currently {earlier.status.value})."
                )
        if target.status.is_decided:
            raise AlreadyDecidedError(f"Level {level} was already decided ({target.status.value}).")
        return target

    @staticmethod
    def level_for(state: ApprovalChainState, actor_id: str) -> int:
        """
        The level *actor_id* should decide next: the first awaiting level
        assigned to them, falling back to their most recent level so that the
        guards report the precise reason.
        """
        mine = [lvl for lvl in state.levels if str(lvl.approver.principal_id) == str(actor_id)]
        if not mine:
            raise InvalidLevelError(f"User {actor_id} is not an approver of document {state.document.id}.")
        for lvl in mine:
            if lvl.status is LevelStatus.AWAITING:
                return lvl.level
        return mine[-1].level

    # ----------------- Transitions -------------------------------------------
    @staticmethod
    def _apply(
        state: ApprovalChainState,
        level: int,
        decision: Decision,
        *,
        comment: Optional[str],
        decided_at: datetime,
        signature_id: Optional[str] = None,
        signed_artifact: Optional[ArtifactRef] = None,
    ) -> ApprovalChainState:
        target = state.level(level)
        if target is None:
            raise InvalidLevelError(f"Document {state.document.id} has no level {level}.")
        new_status = LEVEL_TRANSITIONS[target.status].get(decision)
        if new_status is None:
            raise AlreadyDecidedError(f"Level {level} was already decided ({target.status.value}).")

        levels = tuple(
            replace(
                lvl,
                status=new_status,
                comment=comment,
                signature_id=signature_id,
                decided_at=decided_at,
            )
            if lvl.level == level
            else lvl
            for lvl in state.levels
        )
        doc_status = derive_document_status(levels)
        doc = state.document
        if doc_status is not doc.status and doc_status not in DOCUMENT_TRANSITIONS[doc.status]:
            raise InvalidStateError(f"Document cannot move from {doc.status.value} to {doc_status.value}.")

        document = replace(
            doc,
            status=doc_status,
            signed_artifact=signed_artifact or doc.signed_artifact,
            updated_at=decided_at,
        )
        return ApprovalChainState(document=document, levels=levels)

    def decide_approve(
        self,
        state: ApprovalChainState,
        level: int,
        actor_id: str,
        *,
        signature_id: str,
        signed_artifact: ArtifactRef,
        comment: Optional[str] = None,
        decided_at: Optional[datetime] = None,
    ) -> ApprovalChainState:
        self.check(state, level, actor_id)
        return self._apply(
            state,
            level,
            Decision.APPROVE,
            comment=_clean_comment(comment),
            decided_at=decided_at or utcnow(),
            signature_id=signature_id,
            signed_artifact=signed_artifact,
        )

    def decide_reject(
        self,
        state: ApprovalChainState,
        level: int,
        actor_id: str,
        comment: Optional[str],
        *,
        decided_at: Optional[datetime] = None,
    ) -> ApprovalChainState:
        self.check(state, level, actor_id)
        text = _clean_comment(comment)
        if text is None:
            raise CommentRequiredError("A reason is required to reject a document.")
        return self._apply(state, level, Decision.REJECT, comment=text, decided_at=decided_at or utcnow())

    def decide_request_revision(
        self,
        state: ApprovalChainState,
        level: int,
        actor_id: str,
        comment: Optional[str],
        *,
        decided_at: Optional[datetime] = None,
    ) -> ApprovalChainState:
        self.check(state, level, actor_id)
        text = _clean_comment(comment)
        if text is None:
            raise CommentRequiredError("Please describe the revision you need.")
        return self._apply(
            state, level, Decision.REQUEST_REVISION, comment=text, decided_at=decided_at or utcnow()
        )


def summarize(state: ApprovalChainState) -> Dict[str, int]:
    """Count of levels per status, for logging."""
    out: Dict[str, int] = {}
    for lvl in state.levels:
        out[lvl.status.value] = out.get(lvl.status.value, 0) + 1
    return out
