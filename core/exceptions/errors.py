"""Shared error taxonomy.

Every error raised by the pipeline belongs to one of three categories so that
callers can give the right guidance:

- validation: the request itself is wrong; nothing was changed.
- resource:   a shared resource is unavailable; retry later.
- data:       the stored data cannot serve this request; re-upload or contact
              the submitter.
"""
from __future__ import annotations


class SiguraError(Exception):
    """Base exception for the approval pipeline."""

    category: str = "internal"
    retryable: bool = False


class ValidationError(SiguraError):
    """Rejected request. State is untouched."""

    category = "validation"


class ResourceError(SiguraError):
    """A constrained resource failed or is saturated."""

    category = "resource"
    retryable = True


class DataError(SiguraError):
    """Stored data cannot satisfy the operation."""

    category = "data"


class ConfigurationError(SiguraError):
    """Invalid or incomplete configuration."""

    category = "configuration"
