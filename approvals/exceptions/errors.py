"""Approvals feature exceptions.

Validation errors never change state. Resource errors are retryable. Data
errors mean the stored document cannot serve the request as it stands.
"""
from __future__ import annotations

from typing import Optional

from core.exceptions.errors import ConfigurationError, DataError, ResourceError, ValidationError


# ---- validation ------------------------------------------------------------ #
class InvalidLevelError(ValidationError):
    """The level does not exist, or the caller is not its resolved approver."""


class OutOfSequenceError(ValidationError):
    """An earlier level has not been approved yet."""


class AlreadyDecidedError(ValidationError):
    """The level already carries a terminal decision."""


class CommentRequiredError(ValidationError):
    """Rejections and revision requests must say why."""


class EmptyFileError(ValidationError):
    """The uploaded file has no content."""


class FileTooLargeError(ValidationError):
    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"File is {size} bytes; the limit is {limit} bytes.")
        self.size = size
        self.limit = limit


class InvalidStateError(ValidationError):
    """The document is not in a status that allows this operation."""


class UnknownDocumentError(ValidationError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"Unknown document '{document_id}'.")
        self.document_id = document_id


class NoApproverConfiguredError(ValidationError):
    """A required role has no active occupant."""

    def __init__(self, role: str, department: Optional[str] = None) -> None:
        where = f" in department '{department}'" if department else ""
        super().__init__(f"No active approver configured for role '{role}'{where}.")
        self.role = role
        self.department = department


# ---- resource -------------------------------------------------------------- #
class DocumentBusyError(ResourceError):
    """Another decision on the same document is still in progress."""


class ConcurrentModificationError(ResourceError):
    """The document changed between read and commit."""


# ---- data ------------------------------------------------------------------ #
class MissingArtifactError(DataError):
    def __init__(self, key: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"Stored artifact '{key}' is missing.")
        self.key = key


class NotPreviewableError(DataError):
    """The document's format cannot be rendered as a PDF preview."""


class NotYetApprovedError(DataError):
    """The fully signed artifact exists only once every level approved."""


# ---- configuration --------------------------------------------------------- #
class ChainPolicyError(ConfigurationError):
    """The approval chain policy file is unreadable or inconsistent."""
