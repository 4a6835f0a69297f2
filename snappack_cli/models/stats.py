"""
Dataclass for tracking download session statistics.
"""

import time
from collections import Counter
from dataclasses import dataclass, field

from .media import FailureReason


@dataclass
class DownloadStats:
    """Tracks statistics for a download session."""

    entries_total: int = 0
    entries_accepted: int = 0
    photos_accepted: int = 0
    videos_accepted: int = 0
    fallback_successes: int = 0
    bytes_downloaded: int = 0
    bytes_written: int = 0
    failures: Counter = field(default_factory=Counter)
    started_at: float = field(default_factory=time.monotonic, repr=False)

    @property
    def entries_failed(self) -> int:
        return sum(self.failures.values())

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def record_failure(self, reason: FailureReason) -> None:
        self.failures[reason] += 1

    def failures_by_name(self) -> dict[str, int]:
        """Failure counts keyed by reason value, for display and JSON output."""
        return {reason.value: count for reason, count in self.failures.items()}
