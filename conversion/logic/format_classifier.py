"""
Format classification by declared file name.

Pure functions, no IO. The same table drives the preview path, the signing
path and the media type used to label downloads.
"""
from __future__ import annotations

import os
from typing import Dict

from conversion.exceptions.errors import UnsupportedFormatError
from conversion.models.format_kind import FormatKind

_KIND_BY_EXTENSION: Dict[str, FormatKind] = {
    ".pdf": FormatKind.NATIVE_PDF,
    ".png": FormatKind.NATIVE_IMAGE,
    ".jpg": FormatKind.NATIVE_IMAGE,
    ".jpeg": FormatKind.NATIVE_IMAGE,
    ".gif": FormatKind.NATIVE_IMAGE,
    ".bmp": FormatKind.NATIVE_IMAGE,
    ".txt": FormatKind.NATIVE_TEXT,
    ".doc": FormatKind.OFFICE_CONVERTIBLE,
    ".docx": FormatKind.OFFICE_CONVERTIBLE,
    ".xls": FormatKind.OFFICE_CONVERTIBLE,
    ".xlsx": FormatKind.OFFICE_CONVERTIBLE,
    ".ppt": FormatKind.OFFICE_CONVERTIBLE,
    ".pptx": FormatKind.OFFICE_CONVERTIBLE,
    ".odt": FormatKind.OFFICE_CONVERTIBLE,
    ".ods": FormatKind.OFFICE_CONVERTIBLE,
    ".odp": FormatKind.OFFICE_CONVERTIBLE,
    ".rtf": FormatKind.OFFICE_CONVERTIBLE,
}

_MEDIA_TYPES: Dict[str, str] = {
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".txt": "text/plain",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".odt": "application/vnd.oasis.opendocument.text",
    ".ods": "application/vnd.oasis.opendocument.spreadsheet",
    ".odp": "application/vnd.oasis.opendocument.presentation",
    ".rtf": "application/rtf",
}


def extension_of(file_name: str) -> str:
    """Lower-case extension including the dot ('' if none)."""
    return os.path.splitext((file_name or "").strip())[1].lower()


def classify(file_name: str) -> FormatKind:
    return _KIND_BY_EXTENSION.get(extension_of(file_name), FormatKind.UNSUPPORTED)


def ensure_supported(file_name: str) -> FormatKind:
    """Classify and raise UnsupportedFormatError for anything we cannot handle."""
    kind = classify(file_name)
    if not kind.is_supported:
        raise UnsupportedFormatError(file_name, extension_of(file_name))
    return kind


def media_type_for(file_name: str) -> str:
    return _MEDIA_TYPES.get(extension_of(file_name), "application/octet-stream")


def supported_extensions() -> tuple[str, ...]:
    return tuple(sorted(_KIND_BY_EXTENSION))
