"""
log_entry.py

Dataclass for one audit event.

• as_dict() – serialisable representation (ISO-UTC timestamp)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime          # always UTC
    feature: str
    event: str
    user_id: Optional[str] = None
    reference_id: Optional[str] = None
    message: str = ""
    data: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "timestamp_utc": self.timestamp.isoformat(),
            "feature": self.feature,
            "event": self.event,
            "user_id": self.user_id,
            "reference_id": self.reference_id,
            "message": self.message,
            "data": dict(self.data),
        }
