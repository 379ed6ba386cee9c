"""core/contracts/audit.py
======================

Audit trail contract.

Audit persistence is owned by the surrounding application; the pipeline only
emits events through this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional


class IAuditLogger(ABC):
    """Write-only audit trail logger."""

    @abstractmethod
    def log(
        self,
        feature: str,
        event: str,
        *,
        user_id: Optional[str] = None,
        reference_id: Optional[str] = None,
        message: str = "",
        data: Mapping[str, Any] | None = None,
    ) -> None:
        """Write an audit event."""
