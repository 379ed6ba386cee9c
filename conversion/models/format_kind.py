from __future__ import annotations
from enum import Enum


class FormatKind(str, Enum):
    """How an uploaded file reaches the signature embedder."""
    NATIVE_PDF = "native-pdf"
    NATIVE_IMAGE = "native-image"
    NATIVE_TEXT = "native-text"
    OFFICE_CONVERTIBLE = "office-convertible"
    UNSUPPORTED = "unsupported"

    @property
    def requires_conversion(self) -> bool:
        return self is FormatKind.OFFICE_CONVERTIBLE

    @property
    def is_supported(self) -> bool:
        return self is not FormatKind.UNSUPPORTED
