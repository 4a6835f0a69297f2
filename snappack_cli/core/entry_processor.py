"""
Handles the processing of a single manifest entry, from fetch to storage.
"""

import asyncio
from dataclasses import replace
import logging
from typing import Protocol

from snappack_cli.exceptions import (
    EntryError,
    FileIntegrityError,
    TransferInterruptedError,
    TransportError,
    UnschedulableEntryError,
)
from snappack_cli.media.fetcher import DEFAULT_MIN_PAYLOAD_BYTES, FetchResult
from snappack_cli.media.integrity import MediaValidator
from snappack_cli.models.media import (
    AcceptedMedia,
    FailedEntry,
    MediaKind,
    PendingEntry,
)
from snappack_cli.models.stats import DownloadStats
from snappack_cli.storage.sink import StorageSink
from snappack_cli.utils.formatting import describe_entry
from snappack_cli.utils.path import parse_media_url

log = logging.getLogger(__name__)

EntryOutcome = AcceptedMedia | FailedEntry


class FetchClient(Protocol):
    async def fetch(
        self, url: str, gate: asyncio.Event | None = None
    ) -> FetchResult: ...


class EntryProcessor:
    """
    Fetches, validates and stores one entry, trying its fallback URL once when
    the first URL fails in transport or integrity.
    """

    def __init__(
        self,
        fetcher: FetchClient,
        validator: MediaValidator,
        sink: StorageSink,
        stats: DownloadStats | None = None,
        min_payload_bytes: int = DEFAULT_MIN_PAYLOAD_BYTES,
    ):
        self.fetcher = fetcher
        self.validator = validator
        self.sink = sink
        self.stats = stats or DownloadStats()
        self.min_payload_bytes = min_payload_bytes

    async def process(
        self, entry: PendingEntry, gate: asyncio.Event | None = None
    ) -> EntryOutcome:
        """
        Manages the complete lifecycle of one entry.

        Returns an AcceptedMedia or a FailedEntry. Entry-level errors never
        escape, except TransferInterruptedError, which tells the pipeline to
        reissue the entry instead of failing it. Session stats are left alone
        until the pipeline records the outcome through ``account``.
        """
        display = describe_entry(entry)
        url = entry.first_url
        try:
            try:
                media = await self._attempt(entry, url, gate)
            except (TransportError, FileIntegrityError, UnschedulableEntryError) as e:
                if isinstance(e, TransferInterruptedError) or not self._has_fallback(
                    entry, url
                ):
                    raise
                log.debug(
                    f"Primary URL failed for {display} ({e}); retrying with fallback."
                )
                media = replace(
                    await self._attempt(entry, entry.fallback_url, gate),
                    via_fallback=True,
                )
        except TransferInterruptedError:
            raise
        except EntryError as e:
            log.warning(f"  [red]✗ Failed:[/] {display} ({e})")
            return FailedEntry(entry=entry, reason=e.reason, detail=str(e))

        log.info(f"  [green]✓ Saved:[/] {display} [dim]{media.storage_ref}[/dim]")
        return media

    def account(self, outcome: EntryOutcome) -> None:
        """Adds a recorded outcome to the session stats."""
        if isinstance(outcome, FailedEntry):
            self.stats.record_failure(outcome.reason)
            return
        self.stats.entries_accepted += 1
        if outcome.media_kind is MediaKind.VIDEO:
            self.stats.videos_accepted += 1
        else:
            self.stats.photos_accepted += 1
        if outcome.via_fallback:
            self.stats.fallback_successes += 1
        self.stats.bytes_written += outcome.size_bytes

    async def discard(self, outcome: EntryOutcome) -> None:
        """Removes the stored file of an outcome the pipeline will not record."""
        if isinstance(outcome, AcceptedMedia):
            await self.sink.remove(outcome.storage_ref)

    @staticmethod
    def _has_fallback(entry: PendingEntry, attempted_url: str) -> bool:
        return (
            attempted_url == entry.primary_url
            and bool(entry.fallback_url)
            and entry.fallback_url != entry.primary_url
        )

    async def _attempt(
        self, entry: PendingEntry, url: str, gate: asyncio.Event | None
    ) -> AcceptedMedia:
        """One fetch, validate, persist pass against a single URL."""
        if parse_media_url(url) is None:
            raise UnschedulableEntryError(
                "No usable download URL" if not url else f"Invalid URL '{url}'"
            )

        result = await self.fetcher.fetch(url, gate=gate)
        self.stats.bytes_downloaded += len(result.body)
        if not result.is_success_status:
            raise TransportError(f"HTTP {result.status}", status=result.status)
        if not result.is_usable(self.min_payload_bytes):
            raise TransportError(
                f"Payload too small ({len(result.body)} bytes)", status=result.status
            )

        if not await self.validator.validate(result.body, entry.media_kind):
            raise FileIntegrityError(
                f"Payload is not a decodable {entry.media_kind.value.lower()}"
            )

        # PersistenceError propagates without a fallback retry
        storage_ref = await self.sink.persist(result.body, entry.media_kind)
        return AcceptedMedia.from_entry(
            entry, source_url=url, storage_ref=storage_ref, size_bytes=len(result.body)
        )
