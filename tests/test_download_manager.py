from __future__ import annotations

import json
from pathlib import Path

import pytest

from snappack_cli.core.download_manager import DownloadManager
from snappack_cli.core.state import RunState
from snappack_cli.models.config import DownloadConfig
from snappack_cli.storage.library import MediaLibrary
from tests.conftest import CORRUPT_PAYLOAD, FakeFetcher, make_entry, ok, png_bytes


class StubProgressManager:
    def __init__(self) -> None:
        self.total: int | None = None
        self.snapshots = []

    def initialize_session(self, total_entries: int) -> None:
        self.total = total_entries

    def on_snapshot(self, snapshot) -> None:
        self.snapshots.append(snapshot)


class StubFetcher(FakeFetcher):
    def __init__(self, responses: dict | None = None) -> None:
        super().__init__(responses)
        self.closed = False

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def config(tmp_path: Path) -> DownloadConfig:
    return DownloadConfig(
        media_dir=str(tmp_path / "media"), config_path=str(tmp_path / "config")
    )


def _manager(config: DownloadConfig, fetcher: StubFetcher, fake_validator) -> DownloadManager:
    library = MediaLibrary(Path(config.config_path), config.media_path)
    return DownloadManager(
        config,
        library,
        StubProgressManager(),
        fetcher=fetcher,
        validator=fake_validator,
    )


@pytest.mark.asyncio
async def test_execute_downloads_merges_into_library(config, fake_validator) -> None:
    fetcher = StubFetcher(
        {"https://cdn/a": ok(png_bytes()), "https://cdn/b": ok(CORRUPT_PAYLOAD)}
    )
    manager = _manager(config, fetcher, fake_validator)
    entries = [make_entry("https://cdn/a"), make_entry("https://cdn/b")]

    saved = await manager.execute_downloads(entries)

    assert [m.source_url for m in saved] == ["https://cdn/a"]
    assert [m.id for m in await manager.library.list_media()] == [saved[0].id]
    assert manager.stats.entries_total == 2
    assert manager.stats.entries_accepted == 1
    assert manager.stats.failures_by_name() == {"integrity": 1}
    assert manager.progress_manager.total == 2
    assert manager.progress_manager.snapshots[-1].state is RunState.COMPLETED
    assert fetcher.closed
    assert not manager.was_stopped


@pytest.mark.asyncio
async def test_empty_manifest_does_nothing(config, fake_validator) -> None:
    fetcher = StubFetcher()
    manager = _manager(config, fetcher, fake_validator)

    assert await manager.execute_downloads([]) == []
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_auto_clean_runs_after_download(config, fake_validator) -> None:
    config.auto_clean = True
    # Accepted by the fake probe but not decodable by the library sweep
    fetcher = StubFetcher({"https://cdn/a": ok(b"\x89MEDIA" + b"\x00" * 4000)})
    manager = _manager(config, fetcher, fake_validator)

    saved = await manager.execute_downloads([make_entry("https://cdn/a")])

    assert len(saved) == 1
    assert await manager.library.list_media() == []


@pytest.mark.asyncio
async def test_toggle_pause_and_request_stop(config, fake_validator) -> None:
    fetcher = StubFetcher({"https://cdn/a": ok()})
    manager = _manager(config, fetcher, fake_validator)
    await manager.pipeline.start([make_entry("https://cdn/a")])

    manager.toggle_pause()
    assert manager.pipeline.state is RunState.PAUSED
    manager.toggle_pause()
    assert manager.pipeline.state is RunState.RUNNING

    manager.request_stop()
    await manager.pipeline.wait()
    assert manager.was_stopped
    assert manager.pipeline.state is RunState.COMPLETED


def test_save_session_stats_appends_jsonl(config, fake_validator) -> None:
    manager = _manager(config, StubFetcher(), fake_validator)
    manager.stats.entries_total = 3
    manager.stats.entries_accepted = 2

    manager.save_session_stats()
    manager.save_session_stats()

    lines = (Path(config.config_path) / "session_history.jsonl").read_text().splitlines()
    assert len(lines) == 2
    record = json.loads(lines[0])
    assert record["entries_total"] == 3
    assert record["entries_accepted"] == 2
    assert record["stopped"] is False
    assert 0 <= record["duration_seconds"] < 60
