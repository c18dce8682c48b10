"""Exception hierarchy for sync and commit operations."""

from __future__ import annotations


class CmsSyncError(Exception):
    """Base class for all cms_sync errors."""


class ConfigError(CmsSyncError):
    """Site configuration could not be loaded or validated."""


class TransportError(CmsSyncError):
    """A repository transport call failed.

    Fatal to the current sync or commit pass. The original exception is kept
    as ``__cause__``.
    """

    def __init__(self, operation: str, message: str | None = None):
        self.operation = operation
        super().__init__(message or f"Transport operation failed: {operation}")


class FileError(CmsSyncError):
    """Error tied to a single repository file."""

    def __init__(self, path: str, cause: str | Exception):
        self.path = path
        self.cause = cause
        super().__init__(f"{path}: {cause}")


class DecodeError(FileError):
    """A file's content does not match its declared or inferred format."""


class EncodeError(FileError):
    """Content could not be serialized back to bytes."""


class ReconciliationError(FileError):
    """A file could not be merged into a logical entry."""
