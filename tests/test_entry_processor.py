from __future__ import annotations

from pathlib import Path

import pytest

from snappack_cli.core.entry_processor import EntryProcessor
from snappack_cli.exceptions import TransferInterruptedError, TransportError
from snappack_cli.models.media import AcceptedMedia, FailedEntry, FailureReason, MediaKind
from snappack_cli.models.stats import DownloadStats
from snappack_cli.storage.sink import StorageSink
from tests.conftest import CORRUPT_PAYLOAD, GOOD_PAYLOAD, FakeFetcher, make_entry, ok

PRIMARY = "https://cdn.example.com/media/1"
FALLBACK = "https://example.com/export?id=1"


@pytest.mark.asyncio
async def test_primary_success(processor, fetcher, media_dir: Path) -> None:
    fetcher.responses[PRIMARY] = ok()

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, AcceptedMedia)
    assert outcome.source_url == PRIMARY
    assert outcome.size_bytes == len(GOOD_PAYLOAD)
    assert (media_dir / outcome.storage_ref).read_bytes() == GOOD_PAYLOAD
    assert fetcher.calls == [PRIMARY]
    assert processor.stats.entries_accepted == 0

    processor.account(outcome)

    assert processor.stats.entries_accepted == 1
    assert processor.stats.photos_accepted == 1
    assert processor.stats.bytes_written == len(GOOD_PAYLOAD)


@pytest.mark.asyncio
async def test_accepted_media_carries_entry_metadata(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok()
    entry = make_entry(
        PRIMARY, kind=MediaKind.VIDEO, location="Berlin", captured_at="2022-02-02 02:02:02 UTC"
    )

    outcome = await processor.process(entry)

    assert outcome.media_kind is MediaKind.VIDEO
    assert outcome.location_label == "Berlin"
    assert outcome.captured_at.year == 2022
    assert outcome.storage_ref.endswith(".mp4")
    processor.account(outcome)
    assert processor.stats.videos_accepted == 1


@pytest.mark.asyncio
async def test_transport_failure_retries_fallback(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok(b"Not Found" * 200, status=404)
    fetcher.responses[FALLBACK] = ok()

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, AcceptedMedia)
    assert outcome.source_url == FALLBACK
    assert fetcher.calls == [PRIMARY, FALLBACK]
    assert outcome.via_fallback
    processor.account(outcome)
    assert processor.stats.fallback_successes == 1


@pytest.mark.asyncio
async def test_raised_transport_error_retries_fallback(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = TransportError("timed out")
    fetcher.responses[FALLBACK] = ok()

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, AcceptedMedia)
    assert outcome.source_url == FALLBACK


@pytest.mark.asyncio
async def test_integrity_failure_retries_fallback(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok(CORRUPT_PAYLOAD)
    fetcher.responses[FALLBACK] = ok()

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, AcceptedMedia)
    assert outcome.source_url == FALLBACK


@pytest.mark.asyncio
async def test_both_urls_corrupt_is_integrity_failure(processor, fetcher, media_dir) -> None:
    fetcher.responses[PRIMARY] = ok(CORRUPT_PAYLOAD)
    fetcher.responses[FALLBACK] = ok(CORRUPT_PAYLOAD)

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, FailedEntry)
    assert outcome.reason is FailureReason.INTEGRITY
    assert fetcher.calls == [PRIMARY, FALLBACK]
    assert not media_dir.exists() or list(media_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_http_error_without_fallback_fails(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok(b"gone" * 500, status=404)

    outcome = await processor.process(make_entry(PRIMARY))

    assert isinstance(outcome, FailedEntry)
    assert outcome.reason is FailureReason.TRANSPORT
    assert "404" in outcome.detail
    assert fetcher.calls == [PRIMARY]
    assert processor.stats.entries_failed == 0

    processor.account(outcome)

    assert processor.stats.failures_by_name() == {"transport": 1}


@pytest.mark.asyncio
async def test_undersized_success_is_transport_failure(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok(b"x" * 1000)

    outcome = await processor.process(make_entry(PRIMARY))

    assert isinstance(outcome, FailedEntry)
    assert outcome.reason is FailureReason.TRANSPORT


@pytest.mark.asyncio
async def test_fallback_equal_to_primary_is_not_retried(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = ok(status=500)

    outcome = await processor.process(make_entry(PRIMARY, PRIMARY))

    assert isinstance(outcome, FailedEntry)
    assert fetcher.calls == [PRIMARY]


@pytest.mark.asyncio
async def test_fallback_only_entry_is_fetched_once(processor, fetcher) -> None:
    fetcher.responses[FALLBACK] = ok(status=503)

    outcome = await processor.process(make_entry(fallback=FALLBACK))

    assert isinstance(outcome, FailedEntry)
    assert fetcher.calls == [FALLBACK]


@pytest.mark.asyncio
async def test_entry_without_urls_is_never_fetched(processor, fetcher) -> None:
    outcome = await processor.process(make_entry())

    assert isinstance(outcome, FailedEntry)
    assert outcome.reason is FailureReason.UNSCHEDULABLE
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_unparseable_primary_uses_fallback(processor, fetcher) -> None:
    fetcher.responses[FALLBACK] = ok()

    outcome = await processor.process(make_entry("not a url", FALLBACK))

    assert isinstance(outcome, AcceptedMedia)
    assert fetcher.calls == [FALLBACK]


@pytest.mark.asyncio
async def test_persistence_failure_is_not_retried(fetcher, fake_validator, tmp_path) -> None:
    blocker = tmp_path / "media"
    blocker.write_text("file in the way")
    processor = EntryProcessor(fetcher, fake_validator, StorageSink(blocker), DownloadStats())
    fetcher.responses[PRIMARY] = ok()
    fetcher.responses[FALLBACK] = ok()

    outcome = await processor.process(make_entry(PRIMARY, FALLBACK))

    assert isinstance(outcome, FailedEntry)
    assert outcome.reason is FailureReason.PERSISTENCE
    assert fetcher.calls == [PRIMARY]


@pytest.mark.asyncio
async def test_interrupted_transfer_propagates_without_fallback(processor, fetcher) -> None:
    fetcher.responses[PRIMARY] = TransferInterruptedError("connection reset")
    fetcher.responses[FALLBACK] = ok()

    with pytest.raises(TransferInterruptedError):
        await processor.process(make_entry(PRIMARY, FALLBACK))

    assert fetcher.calls == [PRIMARY]
    assert processor.stats.entries_failed == 0


@pytest.mark.asyncio
async def test_min_payload_threshold_is_configurable(fake_validator, media_dir) -> None:
    fetcher = FakeFetcher({PRIMARY: ok(b"tiny-but-fine")})
    processor = EntryProcessor(
        fetcher, fake_validator, StorageSink(media_dir), min_payload_bytes=4
    )

    outcome = await processor.process(make_entry(PRIMARY))

    assert isinstance(outcome, AcceptedMedia)


@pytest.mark.asyncio
async def test_discard_removes_stored_file(processor, fetcher, media_dir) -> None:
    fetcher.responses[PRIMARY] = ok()
    outcome = await processor.process(make_entry(PRIMARY))

    await processor.discard(outcome)

    assert not (media_dir / outcome.storage_ref).exists()
