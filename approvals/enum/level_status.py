from __future__ import annotations

from enum import Enum


class LevelStatus(str, Enum):
    """Status of one approval level."""

    AWAITING = "awaiting"
    APPROVED = "approved"
    REJECTED = "rejected"
    REVISION_REQUESTED = "revision_requested"

    @property
    def is_decided(self) -> bool:
        return self is not LevelStatus.AWAITING
