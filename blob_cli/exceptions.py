"""Error taxonomy for blob-cli.

Fatal errors (configuration, arguments, listing) abort the command.
Per-entry errors (missing paths, failed transfers) are collected and the
batch carries on.
"""

from typing import Optional


class BlobCliError(Exception):
    """Base exception for all blob-cli errors."""

    def __init__(self, message: str, details: Optional[dict] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}


class ConfigurationError(BlobCliError):
    """Raised when configuration is missing or invalid."""


class ArgumentError(BlobCliError):
    """Raised when a required command-line input is missing."""


class PathNotFoundError(BlobCliError):
    """A user-supplied local path does not exist."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Path does not exist: {path}", {"path": path})
        self.path = path


class TransferError(BlobCliError):
    """Upload or download of a single object failed."""

    def __init__(
        self,
        key: str,
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        details = {"key": key}
        if status_code is not None:
            details["status_code"] = str(status_code)
        super().__init__(message, details)
        self.key = key
        self.status_code = status_code


class ListingError(BlobCliError):
    """The remote listing call failed."""
