"""
The session orchestrator: wires the pipeline to its collaborators, hands the
results to the media library, and records session history.
"""

import asyncio
import json
import logging
import signal
import time
from pathlib import Path

from snappack_cli.cli.progress_manager import ProgressManager
from snappack_cli.media import Fetcher, MediaValidator
from snappack_cli.models.config import DownloadConfig
from snappack_cli.models.media import AcceptedMedia, PendingEntry
from snappack_cli.models.stats import DownloadStats
from snappack_cli.storage.library import MediaLibrary
from snappack_cli.storage.sink import StorageSink

from .entry_processor import EntryProcessor
from .pipeline import DownloadPipeline
from .state import RunState

log = logging.getLogger(__name__)


class DownloadManager:
    """Runs one download session over a parsed manifest."""

    def __init__(
        self,
        config: DownloadConfig,
        library: MediaLibrary,
        progress_manager: ProgressManager,
        fetcher: Fetcher | None = None,
        validator: MediaValidator | None = None,
    ):
        self.config = config
        self.library = library
        self.progress_manager = progress_manager
        self.stats = DownloadStats()
        self.fetcher = fetcher or Fetcher(timeout=config.request_timeout)
        self.processor = EntryProcessor(
            fetcher=self.fetcher,
            validator=validator or MediaValidator.default(config.ffmpeg_binary),
            sink=StorageSink(config.media_path),
            stats=self.stats,
            min_payload_bytes=config.min_payload_bytes,
        )
        self.pipeline = DownloadPipeline(self.processor)
        self.pipeline.add_listener(progress_manager.on_snapshot)
        self.saved: list[AcceptedMedia] = []

    @property
    def was_stopped(self) -> bool:
        return self.pipeline.cancel_requested

    async def _merge_results(self, accepted: list[AcceptedMedia]) -> None:
        """Completion callback: persists the run's accepted items."""
        self.saved = list(accepted)
        if accepted:
            added = await self.library.add_media(accepted)
            log.debug(f"Merged {added} items into the library.")

    def toggle_pause(self) -> None:
        if self.pipeline.state is RunState.PAUSED:
            log.info("[cyan]▶ Resuming...[/cyan]")
            self.pipeline.resume()
        elif self.pipeline.state is RunState.RUNNING:
            log.info("[yellow]⏸ Paused. Send SIGUSR1 again to resume.[/yellow]")
            self.pipeline.pause()

    def request_stop(self) -> None:
        if self.pipeline.state in (RunState.RUNNING, RunState.PAUSED):
            log.info("[yellow]⏹ Stopping after the current step...[/yellow]")
            self.pipeline.stop()

    def _install_signal_handlers(self) -> list[int]:
        """Ctrl-C stops gracefully; SIGUSR1 toggles pause, SIGUSR2 resumes."""
        loop = asyncio.get_running_loop()
        handlers = {signal.SIGINT: self.request_stop}
        if hasattr(signal, "SIGUSR1"):
            handlers[signal.SIGUSR1] = self.toggle_pause
            handlers[signal.SIGUSR2] = self.pipeline.resume
        installed = []
        for sig, handler in handlers.items():
            try:
                loop.add_signal_handler(sig, handler)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                log.debug(f"Signal {sig} control not available on this platform.")
        return installed

    @staticmethod
    def _remove_signal_handlers(installed: list[int]) -> None:
        loop = asyncio.get_running_loop()
        for sig in installed:
            loop.remove_signal_handler(sig)

    async def execute_downloads(self, entries: list[PendingEntry]) -> list[AcceptedMedia]:
        """Runs the pipeline over all entries and merges the results."""
        if not entries:
            log.info("No entries in the manifest. Nothing to do.")
            return []

        self.stats.entries_total = len(entries)
        self.progress_manager.initialize_session(len(entries))
        installed = self._install_signal_handlers()
        try:
            await self.pipeline.start(entries, on_complete=self._merge_results)
            await self.pipeline.wait()
        finally:
            self._remove_signal_handlers(installed)
            await self.fetcher.close()

        if self.config.auto_clean:
            await self.library.clean_broken_media()
        return self.saved

    def save_session_stats(self) -> None:
        """Appends the current session's stats to a history file."""
        stats_file = Path(self.config.config_path) / "session_history.jsonl"
        try:
            stats_file.parent.mkdir(parents=True, exist_ok=True)
            with open(stats_file, "a", encoding="utf-8") as f:
                session_data = {
                    "timestamp": int(time.time()),
                    "entries_total": self.stats.entries_total,
                    "entries_accepted": self.stats.entries_accepted,
                    "entries_failed": self.stats.entries_failed,
                    "failures": self.stats.failures_by_name(),
                    "fallback_successes": self.stats.fallback_successes,
                    "bytes_written": self.stats.bytes_written,
                    "stopped": self.was_stopped,
                    "duration_seconds": round(self.stats.elapsed_seconds, 2),
                }
                json.dump(session_data, f)
                f.write("\n")
        except OSError as e:
            log.warning(f"[yellow]Could not save session stats:[/] {e}")
