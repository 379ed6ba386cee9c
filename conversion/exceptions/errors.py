"""Conversion feature exceptions."""
from __future__ import annotations

from core.exceptions.errors import DataError, ResourceError, ValidationError


class UnsupportedFormatError(ValidationError):
    """The uploaded file type can neither be previewed nor converted."""

    def __init__(self, file_name: str, extension: str) -> None:
        super().__init__(f"Unsupported file type '{extension or '(none)'}' for '{file_name}'.")
        self.file_name = file_name
        self.extension = extension


class RendererUnavailableError(ResourceError):
    """The rendering engine is missing or unhealthy (503-equivalent)."""


class ConversionTimeoutError(ResourceError):
    """A conversion job exceeded its hard timeout."""


class ConversionQueueFullError(ResourceError):
    """Too many conversions are waiting; try again shortly."""


class ConversionFailedError(DataError):
    """The engine ran but did not produce a usable PDF for this source."""
