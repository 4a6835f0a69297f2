"""
Parses a Saved Media export into an ordered list of pending entries.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from snappack_cli.models.media import MediaKind, PendingEntry

log = logging.getLogger(__name__)

MANIFEST_SECTION = "Saved Media"


class ManifestRecord(BaseModel):
    """A single record of the export, keyed by the platform's field names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    date: str = Field(default="", alias="Date")
    media_type: str = Field(default="", alias="Media Type")
    location: str = Field(default="", alias="Location")
    download_link: str = Field(default="", alias="Download Link")
    media_download_url: str = Field(default="", alias="Media Download Url")

    @field_validator("*", mode="before")
    @classmethod
    def _null_as_empty(cls, v):
        return "" if v is None else v

    def to_entry(self) -> PendingEntry:
        # The direct media URL is attempted first, the export link is the fallback
        return PendingEntry(
            captured_at=self.date,
            media_kind=MediaKind.from_label(self.media_type),
            location_label=self.location,
            primary_url=self.media_download_url.strip(),
            fallback_url=self.download_link.strip(),
        )


class SavedMediaExport(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    saved_media: list[ManifestRecord] = Field(alias=MANIFEST_SECTION)


def parse_manifest(raw: bytes | str) -> list[PendingEntry]:
    """
    Decodes an export document into pending entries, preserving manifest order.

    Malformed input never raises: an unreadable document, a missing
    "Saved Media" section or an invalid record all yield an empty list.
    """
    try:
        document = json.loads(raw)
        export = SavedMediaExport.model_validate(document)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        log.warning(f"[yellow]Manifest is not valid JSON: {e}[/yellow]")
        return []
    except ValidationError as e:
        log.warning(
            f"[yellow]Manifest does not match the export format "
            f"({e.error_count()} errors).[/yellow]"
        )
        log.debug(f"Manifest validation errors: {e}")
        return []

    return [record.to_entry() for record in export.saved_media]


def load_manifest(path: Path) -> list[PendingEntry]:
    """Reads and parses a manifest file. An unreadable file yields no entries."""
    try:
        raw = path.read_bytes()
    except OSError as e:
        log.warning(f"[yellow]Could not read manifest '{path}': {e}[/yellow]")
        return []
    return parse_manifest(raw)
