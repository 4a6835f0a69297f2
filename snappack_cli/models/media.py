"""
Data structures for manifest entries, accepted media and per-entry failures.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

CAPTURED_AT_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class MediaKind(Enum):
    """The kind of media a manifest entry declares."""

    PHOTO = "Photo"
    VIDEO = "Video"

    @classmethod
    def from_label(cls, label: str) -> "MediaKind":
        """
        Maps a manifest label to a kind. Only "video" (any case) is a video;
        every other label, including the platform's "Image", is a photo.
        """
        if label.strip().lower() == "video":
            return cls.VIDEO
        return cls.PHOTO

    @property
    def extension(self) -> str:
        return "mp4" if self is MediaKind.VIDEO else "jpg"


class FailureReason(Enum):
    """Why an entry ended up in the failed list."""

    UNSCHEDULABLE = "unschedulable"
    TRANSPORT = "transport"
    INTEGRITY = "integrity"
    PERSISTENCE = "persistence"
    UNEXPECTED = "unexpected"


def parse_captured_at(value: str) -> datetime | None:
    """Parses the platform's capture timestamp into an aware UTC datetime."""
    try:
        parsed = datetime.strptime(value.strip(), CAPTURED_AT_FORMAT)
    except (ValueError, AttributeError):
        return None
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class PendingEntry:
    """One manifest line item that has not been fetched yet."""

    captured_at: str = ""
    media_kind: MediaKind = MediaKind.PHOTO
    location_label: str = ""
    primary_url: str = ""
    fallback_url: str = ""

    @property
    def is_schedulable(self) -> bool:
        return bool(self.primary_url or self.fallback_url)

    @property
    def first_url(self) -> str:
        """The URL attempted first: the primary if present, else the fallback."""
        return self.primary_url or self.fallback_url

    def resolve_captured_at(self) -> datetime:
        return parse_captured_at(self.captured_at) or datetime.now(timezone.utc)


@dataclass(frozen=True)
class AcceptedMedia:
    """A fetched, validated and persisted media item."""

    captured_at: datetime
    media_kind: MediaKind
    location_label: str
    source_url: str
    storage_ref: str
    size_bytes: int = 0
    is_archived: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    # Set for the current run only; not persisted by the library
    via_fallback: bool = field(default=False, compare=False, repr=False)

    @classmethod
    def from_entry(
        cls, entry: PendingEntry, source_url: str, storage_ref: str, size_bytes: int
    ) -> "AcceptedMedia":
        return cls(
            captured_at=entry.resolve_captured_at(),
            media_kind=entry.media_kind,
            location_label=entry.location_label,
            source_url=source_url,
            storage_ref=storage_ref,
            size_bytes=size_bytes,
        )


@dataclass(frozen=True)
class FailedEntry:
    """An entry the pipeline gave up on, with its classification."""

    entry: PendingEntry
    reason: FailureReason
    detail: str = ""
