"""
Data Models Layer.

This package contains the Pydantic configuration model and the dataclasses
that describe manifest entries, accepted media and session statistics.
"""

from .config import DownloadConfig
from .media import AcceptedMedia, FailedEntry, FailureReason, MediaKind, PendingEntry
from .stats import DownloadStats

__all__ = [
    "AcceptedMedia",
    "DownloadConfig",
    "DownloadStats",
    "FailedEntry",
    "FailureReason",
    "MediaKind",
    "PendingEntry",
]
