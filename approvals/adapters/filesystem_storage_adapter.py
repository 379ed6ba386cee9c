"""Filesystem implementation of ArtifactStore.

Layout::

    <root>/<document_id>/<kind>/<revision>[-<tag>].bin

Writes go to a temp file in the target directory and are moved into place
with ``os.replace``.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import List

from approvals.adapters.storage_adapter import ArtifactStore
from approvals.exceptions.errors import MissingArtifactError
from approvals.models.artifact import ArtifactKind, ArtifactRef

logger = logging.getLogger(__name__)


class FilesystemArtifactStore(ArtifactStore):
    """Local filesystem implementation of ArtifactStore."""

    def __init__(self, root_path: str | Path):
        """
        Args:
            root_path: Root directory for artifact storage
        """
        self._root = Path(root_path)
        self._root.mkdir(parents=True, exist_ok=True)

    def _path(self, ref: ArtifactRef) -> Path:
        if not ref.document_id or any(sep in ref.document_id for sep in ("/", "\\", "..")):
            raise ValueError(f"Unsafe document id '{ref.document_id}'")
        return self._root / ref.document_id / ref.kind.value / f"{ref.name}.bin"

    def put(self, ref: ArtifactRef, data: bytes) -> None:
        dest = self._path(ref)
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".tmp-", dir=dest.parent)
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(data)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp, dest)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def get(self, ref: ArtifactRef) -> bytes:
        try:
            return self._path(ref).read_bytes()
        except FileNotFoundError:
            raise MissingArtifactError(ref.key) from None

    def exists(self, ref: ArtifactRef) -> bool:
        return self._path(ref).is_file()

    def delete(self, ref: ArtifactRef) -> bool:
        try:
            self._path(ref).unlink()
            return True
        except FileNotFoundError:
            return False

    def list_refs(self, document_id: str) -> List[ArtifactRef]:
        refs: List[ArtifactRef] = []
        for kind in ArtifactKind:
            kind_dir = self._root / document_id / kind.value
            if not kind_dir.is_dir():
                continue
            for f in sorted(kind_dir.glob("*.bin")):
                try:
                    refs.append(ArtifactRef.from_name(document_id, kind, f.stem))
                except ValueError:
                    logger.warning("Ignoring stray file in artifact store: %s", f)
        return refs
