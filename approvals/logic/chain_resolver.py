"""
Resolve the ordered approver chain for a document.

Pure with respect to the role directory: the same directory contents always
yield the same chain. When several active principals hold a role, the one with
the lowest principal id is chosen (numeric ids compare numerically).
"""
from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from approvals.enum.approver_role import ApproverRole
from approvals.exceptions.errors import NoApproverConfiguredError
from approvals.logic.chain_policy import ChainPolicy
from approvals.models.approval_models import ChainEntry
from core.contracts.directory import IRoleDirectory, PrincipalInfo

logger = logging.getLogger(__name__)


def _id_key(principal_id: str) -> Tuple[int, int, str]:
    pid = str(principal_id).strip()
    if pid.isdigit():
        return (0, int(pid), pid)
    return (1, 0, pid)


class ApprovalChainResolver:
    def __init__(self, directory: IRoleDirectory, policy: Optional[ChainPolicy] = None) -> None:
        self._directory = directory
        self._policy = policy or ChainPolicy()

    @property
    def policy(self) -> ChainPolicy:
        return self._policy

    def _pick(self, role: ApproverRole, department: Optional[str]) -> PrincipalInfo:
        scope = department if role.department_scoped else None
        if role.department_scoped and not department:
            raise NoApproverConfiguredError(role.value, department)
        candidates = [p for p in self._directory.occupants(role.value, department=scope) if p.active]
        if not candidates:
            raise NoApproverConfiguredError(role.value, scope)
        return min(candidates, key=lambda p: _id_key(p.principal_id))

    def resolve(self, doc_type: str, department: Optional[str]) -> List[ChainEntry]:
        """
        Ordered chain for *doc_type* submitted from *department*.

        Raises:
            NoApproverConfiguredError: a required role has no active occupant.
        """
        chain = [
            ChainEntry(level=i, role=role.value, principal=self._pick(role, department))
            for i, role in enumerate(self._policy.roles_for(doc_type), start=1)
        ]
        logger.debug(
            "Resolved chain for %s/%s: %s",
            doc_type,
            department,
            ", ".join(f"{e.level}:{e.role}={e.principal.principal_id}" for e in chain),
        )
        return chain
