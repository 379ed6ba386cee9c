"""
Per-document mutual exclusion.

Decisions on the same document run one at a time; different documents never
wait on each other. Entries are reference counted and dropped once nobody
holds or waits for them, so the registry does not grow with the number of
documents ever touched.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from approvals.exceptions.errors import DocumentBusyError


class _Entry:
    __slots__ = ("lock", "refs")

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.refs = 0


class DocumentLockRegistry:
    def __init__(self, timeout: Optional[float] = None) -> None:
        self._timeout = timeout if timeout and timeout > 0 else None
        self._guard = threading.Lock()
        self._entries: Dict[str, _Entry] = {}

    @contextmanager
    def hold(self, document_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(document_id, _Entry())
            entry.refs += 1
        try:
            acquired = entry.lock.acquire(timeout=self._timeout) if self._timeout else entry.lock.acquire()
            if not acquired:
                raise DocumentBusyError(
                    f"Document {document_id} is busy with another decision; try again shortly."
                )
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    self._entries.pop(document_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)
