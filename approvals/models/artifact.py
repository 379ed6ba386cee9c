from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ArtifactKind(str, Enum):
    ORIGINAL = "original"
    CONVERTED = "converted"
    SIGNED = "signed"
    SIGNATURE_IMAGE = "signature_image"


@dataclass(frozen=True)
class ArtifactRef:
    """
    Pointer to one stored blob: ``<document_id>/<kind>/<revision>[-<tag>]``.

    ``revision`` is the approval level for signed artifacts and signature
    images, and 0 for the original and the converted preview. ``tag`` tells
    apart attempts at the same level, so an attempt that loses the commit
    race can clean up without touching the winner's files.
    """
    document_id: str
    kind: ArtifactKind
    revision: int = 0
    tag: str = ""

    @property
    def name(self) -> str:
        return f"{self.revision:03d}-{self.tag}" if self.tag else f"{self.revision:03d}"

    @property
    def key(self) -> str:
        return f"{self.document_id}/{self.kind.value}/{self.name}"

    @classmethod
    def from_name(cls, document_id: str, kind: ArtifactKind, name: str) -> "ArtifactRef":
        revision, _, tag = name.partition("-")
        return cls(document_id, kind, int(revision), tag)

    @classmethod
    def parse(cls, key: str) -> "ArtifactRef":
        try:
            document_id, kind, name = key.split("/")
            return cls.from_name(document_id, ArtifactKind(kind), name)
        except ValueError as ex:
            raise ValueError(f"Malformed artifact key '{key}'") from ex

    @classmethod
    def original(cls, document_id: str) -> "ArtifactRef":
        return cls(document_id, ArtifactKind.ORIGINAL)

    @classmethod
    def converted(cls, document_id: str) -> "ArtifactRef":
        return cls(document_id, ArtifactKind.CONVERTED)

    @classmethod
    def signed(cls, document_id: str, level: int, tag: str = "") -> "ArtifactRef":
        return cls(document_id, ArtifactKind.SIGNED, level, tag)

    @classmethod
    def signature_image(cls, document_id: str, level: int, tag: str = "") -> "ArtifactRef":
        return cls(document_id, ArtifactKind.SIGNATURE_IMAGE, level, tag)

    def __str__(self) -> str:
        return self.key
