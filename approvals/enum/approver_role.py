"""approvals/enum/approver_role.py
================================

Canonical approver role identifiers.

Department heads are looked up inside the document's department; principals
and administrators act for the whole institution.
"""
from __future__ import annotations

from enum import Enum


class ApproverRole(str, Enum):
    DEPARTMENT_HEAD = "department_head"
    PRINCIPAL = "principal"
    ADMIN = "admin"

    @property
    def department_scoped(self) -> bool:
        return self is ApproverRole.DEPARTMENT_HEAD

    @property
    def label(self) -> str:
        return self.value.replace("_", " ").title()
