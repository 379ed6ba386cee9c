from __future__ import annotations

from enum import Enum


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        """Sort key: urgent first."""
        return {"urgent": 0, "high": 1, "medium": 2, "low": 3}[self.value]
