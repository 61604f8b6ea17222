"""Exception taxonomy for codestore operations.

Every error a request handler can recover from derives from
:class:`StorageError` and carries the HTTP status it maps to. Errors raised
after a streaming response has started cannot be mapped and are only logged.
"""

from __future__ import annotations


class StorageError(RuntimeError):
    """Base class for recoverable storage failures."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidIdentifier(StorageError):
    """Raised when a codebase identifier is not a canonical UUID."""

    status_code = 400


class InvalidPath(StorageError):
    """Raised for empty, traversing, or root-escaping relative paths."""

    status_code = 400


class NotFound(StorageError):
    """Raised when a stored file or codebase does not exist."""

    status_code = 404


class IsDirectory(StorageError):
    """Raised when a directory is requested as if it were a file."""

    status_code = 400


class UploadParseFailure(StorageError):
    """Raised for malformed multipart bodies and oversized requests."""

    status_code = 400


class AllUploadsFailed(StorageError):
    """Raised when no file of an upload batch could be stored."""

    status_code = 400

    def __init__(self, message: str, skipped: list[str] | None = None) -> None:
        super().__init__(message)
        self.skipped = list(skipped or [])


class IOFailure(StorageError):
    """Raised for unexpected filesystem read or write errors."""

    status_code = 500


class StorageRootError(RuntimeError):
    """Raised when the storage root directory cannot be created."""


__all__ = [
    "AllUploadsFailed",
    "IOFailure",
    "InvalidIdentifier",
    "InvalidPath",
    "IsDirectory",
    "NotFound",
    "StorageError",
    "StorageRootError",
    "UploadParseFailure",
]
