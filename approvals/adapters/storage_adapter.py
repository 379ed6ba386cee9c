"""Artifact store abstraction.

Defines the interface for storing document artifacts (original upload,
converted preview, signed PDFs, encrypted signature images).
Allows switching between local filesystem, object storage, etc.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List

from approvals.models.artifact import ArtifactRef


class ArtifactStore(ABC):
    """Abstract blob store keyed by :class:`ArtifactRef`."""

    @abstractmethod
    def put(self, ref: ArtifactRef, data: bytes) -> None:
        """
        Store *data* under *ref*, replacing any previous content.

        Readers must never observe a partially written artifact.

        Args:
            ref: Artifact reference
            data: Complete artifact bytes
        """
        raise NotImplementedError

    @abstractmethod
    def get(self, ref: ArtifactRef) -> bytes:
        """
        Load an artifact.

        Raises:
            MissingArtifactError: nothing is stored under *ref*
        """
        raise NotImplementedError

    @abstractmethod
    def exists(self, ref: ArtifactRef) -> bool:
        raise NotImplementedError

    @abstractmethod
    def delete(self, ref: ArtifactRef) -> bool:
        """
        Remove an artifact.

        Returns:
            True if something was deleted
        """
        raise NotImplementedError

    @abstractmethod
    def list_refs(self, document_id: str) -> List[ArtifactRef]:
        """All artifacts stored for a document."""
        raise NotImplementedError
