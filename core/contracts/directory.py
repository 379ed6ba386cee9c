"""core/contracts/directory.py
==========================

Role directory contract.

Role and permission storage is external. The chain resolver only needs to ask
"who actively holds role R (in department D)?" and to look people up by id.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class PrincipalInfo:
    """Snapshot of a person as the directory knows them right now."""

    principal_id: str
    full_name: str
    role: str
    department: Optional[str] = None
    subject: Optional[str] = None
    active: bool = True


class IRoleDirectory(ABC):
    """Read-only view on the organisation's role roster."""

    @abstractmethod
    def occupants(self, role: str, *, department: Optional[str] = None) -> Iterable[PrincipalInfo]:
        """Return everybody holding *role* (restricted to *department* if given)."""

    @abstractmethod
    def get(self, principal_id: str) -> Optional[PrincipalInfo]:
        """Return a principal by id, or None."""
