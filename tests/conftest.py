"""Shared fakes and fixtures for the snappack-cli test-suite."""

from __future__ import annotations

import asyncio
import io
import os
from pathlib import Path

import pytest
from PIL import Image

from snappack_cli.core.entry_processor import EntryProcessor
from snappack_cli.core.pipeline import DownloadPipeline
from snappack_cli.exceptions import TransportError
from snappack_cli.media.fetcher import FetchResult
from snappack_cli.media.integrity import MediaValidator
from snappack_cli.models.media import MediaKind, PendingEntry
from snappack_cli.models.stats import DownloadStats
from snappack_cli.storage.sink import StorageSink

GOOD_PAYLOAD = b"\x89MEDIA" + b"\x00" * 2048
CORRUPT_PAYLOAD = b"corrupt" + b"\x00" * 2048


def make_entry(
    primary: str = "",
    fallback: str = "",
    kind: MediaKind = MediaKind.PHOTO,
    captured_at: str = "2023-05-01 12:30:00 UTC",
    location: str = "",
) -> PendingEntry:
    return PendingEntry(
        captured_at=captured_at,
        media_kind=kind,
        location_label=location,
        primary_url=primary,
        fallback_url=fallback,
    )


def ok(body: bytes = GOOD_PAYLOAD, status: int = 200) -> FetchResult:
    return FetchResult(body=body, status=status)


class FakeFetcher:
    """
    Serves canned responses by URL and records every call.

    A response may be a FetchResult, an exception instance to raise, or a list
    consumed one item per call. Unknown URLs raise a TransportError.
    """

    def __init__(self, responses: dict | None = None) -> None:
        self.responses = dict(responses or {})
        self.calls: list[str] = []
        self.blockers: dict[str, asyncio.Event] = {}
        self.started: dict[str, asyncio.Event] = {}

    def block(self, url: str) -> asyncio.Event:
        """Makes requests to ``url`` hang until the returned event is set."""
        self.blockers[url] = asyncio.Event()
        self.started[url] = asyncio.Event()
        return self.blockers[url]

    async def fetch(self, url: str, gate: asyncio.Event | None = None) -> FetchResult:
        self.calls.append(url)
        if url in self.blockers:
            self.started[url].set()
            await self.blockers[url].wait()
        if gate is not None and not gate.is_set():
            await gate.wait()
        await asyncio.sleep(0)

        response = self.responses.get(url)
        if isinstance(response, list):
            response = response.pop(0)
        if response is None:
            raise TransportError(f"Cannot connect to {url}")
        if isinstance(response, Exception):
            raise response
        return response


class FakeProbe:
    """Accepts any payload that does not start with ``corrupt``."""

    def __init__(self) -> None:
        self.seen: list[bytes] = []

    async def probe(self, data: bytes) -> bool:
        self.seen.append(data)
        return not data.startswith(b"corrupt")


class RecordingCallback:
    def __init__(self) -> None:
        self.calls: list[list] = []

    def __call__(self, accepted: list) -> None:
        self.calls.append(list(accepted))


def png_bytes(size: tuple[int, int] = (64, 64)) -> bytes:
    """A noisy PNG large enough to clear the payload threshold."""
    image = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    return tmp_path / "media"


@pytest.fixture
def fake_validator() -> MediaValidator:
    probe = FakeProbe()
    return MediaValidator({MediaKind.PHOTO: probe, MediaKind.VIDEO: probe})


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def processor(fetcher, fake_validator, media_dir) -> EntryProcessor:
    return EntryProcessor(
        fetcher=fetcher,
        validator=fake_validator,
        sink=StorageSink(media_dir),
        stats=DownloadStats(),
    )


@pytest.fixture
def pipeline(processor) -> DownloadPipeline:
    return DownloadPipeline(processor)
