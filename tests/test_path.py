from __future__ import annotations

from datetime import datetime, timezone

import pytest

from snappack_cli.models.media import AcceptedMedia, MediaKind
from snappack_cli.utils.path import ExportPathFormatter, parse_media_url


@pytest.mark.parametrize(
    "url",
    [
        "https://cdn.example.com/media/1",
        "http://example.com/export?id=1&sig=abc",
        "  https://cdn.example.com/padded  ",
    ],
)
def test_parse_media_url_accepts_absolute_http(url: str) -> None:
    parsed = parse_media_url(url)

    assert parsed is not None
    assert parsed.scheme in ("http", "https")


@pytest.mark.parametrize(
    "url",
    ["", "   ", "not a url", "/relative/path", "ftp://example.com/file", "https://"],
)
def test_parse_media_url_rejects_unusable(url: str) -> None:
    assert parse_media_url(url) is None


def _media(**overrides) -> AcceptedMedia:
    values = dict(
        captured_at=datetime(2023, 5, 1, 12, 30, 5, tzinfo=timezone.utc),
        media_kind=MediaKind.VIDEO,
        location_label="Berlin/Mitte",
        source_url="https://cdn.example.com/media/1",
        storage_ref="0123456789abcdef.mp4",
        id="abcdef0123456789",
    )
    values.update(overrides)
    return AcceptedMedia(**values)


def test_default_template() -> None:
    name = ExportPathFormatter().format_name(_media())

    assert name == "2023-05-01_12-30-05_Video_abcdef01.mp4"


def test_location_is_sanitized() -> None:
    formatter = ExportPathFormatter("{location}_{id}.{ext}")

    name = formatter.format_name(_media())

    assert "/" not in name
    assert name.endswith("_abcdef01.mp4")


def test_unknown_placeholder_is_rejected() -> None:
    with pytest.raises(ValueError, match="artist"):
        ExportPathFormatter("{artist}_{id}")


def test_template_requires_id() -> None:
    with pytest.raises(ValueError, match="id"):
        ExportPathFormatter("{date}.{ext}")
