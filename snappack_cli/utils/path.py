"""
Utilities for handling file paths, export templates, and URL parsing.
"""

import re
from pathlib import Path
from typing import Any, Dict, Optional

from pathvalidate import sanitize_filename
from yarl import URL

from snappack_cli.models.media import AcceptedMedia

DEFAULT_EXPORT_TEMPLATE = "{date}_{time}_{kind}_{id}.{ext}"


def parse_media_url(url: str) -> Optional[URL]:
    """
    Parses a download URL. Returns None unless it is an absolute http(s) URL
    with a host.
    """
    if not url or not url.strip():
        return None
    try:
        parsed = URL(url.strip())
    except (ValueError, TypeError):
        return None
    if parsed.scheme not in ("http", "https") or not parsed.host:
        return None
    return parsed


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)


class ExportPathFormatter:
    """
    Formats an export file name template using library item metadata.
    """

    PLACEHOLDER_PATTERN = re.compile(r"\{(\w+)\}")
    KNOWN_PLACEHOLDERS = {"date", "time", "kind", "location", "id", "ext"}

    def __init__(self, template: str = DEFAULT_EXPORT_TEMPLATE) -> None:
        unknown = set(self.PLACEHOLDER_PATTERN.findall(template)) - self.KNOWN_PLACEHOLDERS
        if unknown:
            raise ValueError(
                f"Unknown placeholder(s) in export template: {', '.join(sorted(unknown))}"
            )
        if "{id}" not in template:
            raise ValueError("Export template must contain {id} to keep names unique.")
        self.template = template

    def format_name(self, media: AcceptedMedia) -> str:
        """Generates a sanitized file name for a library item."""
        template_vars = self._get_template_vars(media)
        return sanitize_filename(self.template.format(**template_vars), platform="auto")

    def _get_template_vars(self, media: AcceptedMedia) -> Dict[str, Any]:
        ext = Path(media.storage_ref).suffix.lstrip(".") or media.media_kind.extension
        return {
            "date": media.captured_at.strftime("%Y-%m-%d"),
            "time": media.captured_at.strftime("%H-%M-%S"),
            "kind": media.media_kind.value,
            "location": sanitize_filename(media.location_label or "Unknown"),
            "id": media.id[:8],
            "ext": ext,
        }
