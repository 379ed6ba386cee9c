"""Fixed in-process role directory.

Stand-in for the external role storage: useful for tests, demos and small
deployments that keep their roster in a JSON file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from core.contracts.directory import IRoleDirectory, PrincipalInfo


def _norm(value: Optional[str]) -> str:
    return (value or "").strip().lower()


class StaticRoleDirectory(IRoleDirectory):
    def __init__(self, principals: Iterable[PrincipalInfo] = ()) -> None:
        self._by_id: Dict[str, PrincipalInfo] = {}
        for p in principals:
            self.add(p)

    def add(self, principal: PrincipalInfo) -> None:
        self._by_id[str(principal.principal_id)] = principal

    def deactivate(self, principal_id: str) -> None:
        p = self._by_id[str(principal_id)]
        self._by_id[p.principal_id] = PrincipalInfo(
            principal_id=p.principal_id,
            full_name=p.full_name,
            role=p.role,
            department=p.department,
            subject=p.subject,
            active=False,
        )

    def occupants(self, role: str, *, department: Optional[str] = None) -> List[PrincipalInfo]:
        out = [p for p in self._by_id.values() if _norm(p.role) == _norm(role)]
        if department is not None:
            out = [p for p in out if _norm(p.department) == _norm(department)]
        return out

    def get(self, principal_id: str) -> Optional[PrincipalInfo]:
        return self._by_id.get(str(principal_id))

    @classmethod
    def from_json(cls, path: Path | str) -> "StaticRoleDirectory":
        """
        Load ``[{"principal_id": "7", "full_name": "...", "role": "principal", ...}, ...]``.
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(
            PrincipalInfo(
                principal_id=str(item["principal_id"]),
                full_name=item["full_name"],
                role=item["role"],
                department=item.get("department"),
                subject=item.get("subject"),
                active=bool(item.get("active", True)),
            )
            for item in raw
        )
