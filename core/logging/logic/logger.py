"""
core/logging/logic/logger.py
============================

Default audit sink: writes audit events to the ``sigura.audit`` logger.

Durable audit storage belongs to the surrounding application, which plugs in
its own :class:`~core.contracts.audit.IAuditLogger`. This implementation keeps
the last events in memory for diagnostics and tests.
"""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from datetime import datetime, timezone
from typing import Any, Deque, List, Mapping, Optional

from core.contracts.audit import IAuditLogger
from core.logging.models.log_entry import LogEntry

AUDIT_LOGGER_NAME = "sigura.audit"


class LoggingAuditLogger(IAuditLogger):
    """Thread-safe audit logger on top of the standard logging module."""

    def __init__(self, *, logger: Optional[logging.Logger] = None, keep_last: int = 500) -> None:
        self._logger = logger or logging.getLogger(AUDIT_LOGGER_NAME)
        self._lock = threading.Lock()
        self._entries: Deque[LogEntry] = deque(maxlen=keep_last)

    # ------------------------------------------------------------------ #
    #  IAuditLogger                                                      #
    # ------------------------------------------------------------------ #
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
        entry = LogEntry(
            timestamp=datetime.now(timezone.utc),
            feature=feature,
            event=event,
            user_id=user_id,
            reference_id=reference_id,
            message=message,
            data=dict(data or {}),
        )
        with self._lock:
            self._entries.append(entry)

        self._logger.info(
            "%s.%s ref=%s user=%s %s %s",
            feature,
            event,
            reference_id or "-",
            user_id or "-",
            message,
            json.dumps(entry.data, ensure_ascii=False, default=str, sort_keys=True),
        )

    # ------------------------------------------------------------------ #
    #  Diagnostics                                                       #
    # ------------------------------------------------------------------ #
    def entries(self, *, event: Optional[str] = None, reference_id: Optional[str] = None) -> List[LogEntry]:
        with self._lock:
            items = list(self._entries)
        if event is not None:
            items = [e for e in items if e.event == event]
        if reference_id is not None:
            items = [e for e in items if e.reference_id == reference_id]
        return items

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
