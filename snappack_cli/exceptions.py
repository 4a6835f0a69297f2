"""
Defines custom exceptions for the application to allow for more specific error handling.
"""

from snappack_cli.models.media import FailureReason


class SnapPackError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(SnapPackError):
    """Raised for issues related to configuration loading or validation."""


class LibraryError(SnapPackError):
    """Raised when the media library database cannot be read or written."""


class EntryError(SnapPackError):
    """
    Base class for failures confined to a single manifest entry.

    The pipeline never lets these escape a run: each one is converted into a
    failed entry carrying the class-level ``reason``.
    """

    reason: FailureReason = FailureReason.UNEXPECTED


class UnschedulableEntryError(EntryError):
    """Raised when an entry has no URL that can be requested."""

    reason = FailureReason.UNSCHEDULABLE


class TransportError(EntryError):
    """
    Raised on timeouts, connection failures, non-success statuses, or payloads
    below the integrity threshold.
    """

    reason = FailureReason.TRANSPORT

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class TransferInterruptedError(TransportError):
    """Raised when a suspended transfer was dropped by the transport before resuming."""


class FileIntegrityError(EntryError):
    """Raised when a downloaded payload does not decode as its declared media kind."""

    reason = FailureReason.INTEGRITY


class PersistenceError(EntryError):
    """Raised when a validated payload cannot be written to the media directory."""

    reason = FailureReason.PERSISTENCE
