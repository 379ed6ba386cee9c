"""Signature feature exceptions."""
from __future__ import annotations

from core.exceptions.errors import DataError, ValidationError


class EmptySignatureError(ValidationError):
    """No signature image was given, or the image carries no ink."""


class InvalidSignatureImageError(ValidationError):
    """The signature payload is not a decodable PNG, JPEG or GIF image."""


class CorruptInputError(DataError):
    """The base document is not a well-formed PDF."""


class AnchorOutOfBoundsError(DataError):
    """A signature placement points outside the document or its page."""

    def __init__(self, message: str, *, page_index: int | None = None) -> None:
        super().__init__(message)
        self.page_index = page_index


class SignatureKeyError(DataError):
    """A stored signature image cannot be decrypted with the configured key ring."""
