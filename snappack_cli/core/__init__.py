"""
Core application engine for orchestrating the download process.

This package contains the primary logic. The `DownloadPipeline` owns the run
state machine and the queue, delegating the work on each individual entry to
the `EntryProcessor`.
"""

from .entry_processor import EntryProcessor
from .pipeline import DownloadPipeline, RunSnapshot
from .state import RunState

__all__ = ["DownloadPipeline", "EntryProcessor", "RunSnapshot", "RunState"]
