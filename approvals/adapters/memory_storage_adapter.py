"""In-memory ArtifactStore for tests."""

from __future__ import annotations

import threading
from typing import Dict, List

from approvals.adapters.storage_adapter import ArtifactStore
from approvals.exceptions.errors import MissingArtifactError
from approvals.models.artifact import ArtifactRef


class InMemoryArtifactStore(ArtifactStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._blobs: Dict[ArtifactRef, bytes] = {}

    def put(self, ref: ArtifactRef, data: bytes) -> None:
        with self._lock:
            self._blobs[ref] = bytes(data)

    def get(self, ref: ArtifactRef) -> bytes:
        with self._lock:
            try:
                return self._blobs[ref]
            except KeyError:
                raise MissingArtifactError(ref.key) from None

    def exists(self, ref: ArtifactRef) -> bool:
        with self._lock:
            return ref in self._blobs

    def delete(self, ref: ArtifactRef) -> bool:
        with self._lock:
            return self._blobs.pop(ref, None) is not None

    def list_refs(self, document_id: str) -> List[ArtifactRef]:
        with self._lock:
            refs = [r for r in self._blobs if r.document_id == document_id]
        return sorted(refs, key=lambda r: (r.kind.value, r.revision, r.tag))
