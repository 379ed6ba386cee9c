"""
Which roles must approve a document type, in order.

Loaded from JSON::

    {
      "default": ["department_head", "principal"],
      "document_types": {"budget_request": ["department_head", "principal", "admin"]}
    }

Document type names are matched case-insensitively. Unknown types use the
default chain.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from approvals.enum.approver_role import ApproverRole
from approvals.exceptions.errors import ChainPolicyError

logger = logging.getLogger(__name__)

DEFAULT_POLICY_FILE = Path(__file__).with_name("chain_policy.json")


def _norm_type(doc_type: str) -> str:
    return (doc_type or "").strip().lower()


def _roles(raw: Sequence[str], where: str) -> Tuple[ApproverRole, ...]:
    if not raw:
        raise ChainPolicyError(f"Approval chain for {where} is empty.")
    try:
        roles = tuple(ApproverRole(str(r).strip().lower()) for r in raw)
    except ValueError as ex:
        raise ChainPolicyError(f"Unknown approver role in chain for {where}: {ex}") from ex
    if len(set(roles)) != len(roles):
        raise ChainPolicyError(f"Approval chain for {where} repeats a role.")
    return roles


@dataclass(frozen=True)
class ChainPolicy:
    default: Tuple[ApproverRole, ...] = (ApproverRole.DEPARTMENT_HEAD, ApproverRole.PRINCIPAL)
    by_type: Mapping[str, Tuple[ApproverRole, ...]] = field(default_factory=dict)

    def roles_for(self, doc_type: str) -> Tuple[ApproverRole, ...]:
        return self.by_type.get(_norm_type(doc_type), self.default)

    @classmethod
    def from_mapping(cls, data: Mapping) -> "ChainPolicy":
        default = _roles(data.get("default") or [r.value for r in cls.default], "the default chain")
        by_type: Dict[str, Tuple[ApproverRole, ...]] = {}
        for name, raw in (data.get("document_types") or {}).items():
            by_type[_norm_type(name)] = _roles(raw, f"document type '{name}'")
        return cls(default=default, by_type=by_type)

    @classmethod
    def load(cls, path: Optional[Path | str] = None) -> "ChainPolicy":
        src = Path(path) if path else DEFAULT_POLICY_FILE
        try:
            data = json.loads(src.read_text(encoding="utf-8"))
        except FileNotFoundError as ex:
            raise ChainPolicyError(f"Chain policy file not found: {src}") from ex
        except json.JSONDecodeError as ex:
            raise ChainPolicyError(f"Chain policy file {src} is not valid JSON: {ex}") from ex
        if not isinstance(data, dict):
            raise ChainPolicyError(f"Chain policy file {src} must contain a JSON object.")
        policy = cls.from_mapping(data)
        logger.debug("Loaded chain policy from %s (%s document types)", src, len(policy.by_type))
        return policy
