"""
The download pipeline controller: a single worker task that walks the queue in
manifest order, with pause, resume and stop control and live progress.
"""

import asyncio
import inspect
import logging
from collections import deque
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Union

from snappack_cli.exceptions import TransferInterruptedError
from snappack_cli.models.media import (
    AcceptedMedia,
    FailedEntry,
    FailureReason,
    PendingEntry,
)
from snappack_cli.utils.formatting import describe_entry

from .entry_processor import EntryOutcome, EntryProcessor
from .state import Effect, RunEvent, RunState, is_active, transition

log = logging.getLogger(__name__)

CompletionCallback = Callable[
    [list[AcceptedMedia]], Union[None, Awaitable[None]]
]


@dataclass(frozen=True)
class RunSnapshot:
    """A point-in-time view of a run, safe to hand to display code."""

    state: RunState
    total: int
    processed: int
    fraction: float
    accepted: tuple[AcceptedMedia, ...]
    failed: tuple[FailedEntry, ...]
    pending: tuple[PendingEntry, ...]
    current: Optional[PendingEntry] = None


ProgressListener = Callable[[RunSnapshot], None]


class DownloadPipeline:
    """
    Orchestrates a sequential download run.

    The pipeline owns the queue and the accepted/failed lists exclusively. All
    state changes go through ``core.state.transition``; the completion
    callback receives the accepted list exactly once per run.
    """

    def __init__(self, processor: EntryProcessor):
        self.processor = processor
        self._state = RunState.IDLE
        self._queue: deque[PendingEntry] = deque()
        self._accepted: list[AcceptedMedia] = []
        self._failed: list[FailedEntry] = []
        self._total = 0
        self._cancel_requested = False
        self._current: Optional[PendingEntry] = None
        self._on_complete: Optional[CompletionCallback] = None
        self._delivered = False

        self._gate = asyncio.Event()
        self._gate.set()
        self._worker: Optional[asyncio.Task] = None
        self._transfer: Optional[asyncio.Task] = None
        self._listeners: list[ProgressListener] = []

    # --- Observable state ---

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def total(self) -> int:
        return self._total

    @property
    def processed(self) -> int:
        return len(self._accepted) + len(self._failed)

    @property
    def progress(self) -> float:
        """Fraction of entries classified so far; 0.0 for an empty run."""
        if self._total == 0:
            return 0.0
        return self.processed / self._total

    @property
    def queue(self) -> tuple[PendingEntry, ...]:
        return tuple(self._queue)

    @property
    def accepted(self) -> tuple[AcceptedMedia, ...]:
        return tuple(self._accepted)

    @property
    def failed(self) -> tuple[FailedEntry, ...]:
        return tuple(self._failed)

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def snapshot(self) -> RunSnapshot:
        return RunSnapshot(
            state=self._state,
            total=self._total,
            processed=self.processed,
            fraction=self.progress,
            accepted=self.accepted,
            failed=self.failed,
            pending=self.queue,
            current=self._current,
        )

    def add_listener(self, listener: ProgressListener) -> None:
        """Registers a callback that receives a snapshot after every change."""
        self._listeners.append(listener)

    def _notify(self) -> None:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                log.debug(f"Progress listener raised: {e}", exc_info=True)

    # --- State machine plumbing ---

    def _fire(self, event: RunEvent) -> tuple[Effect, ...]:
        result = transition(self._state, event)
        changed = result.state is not self._state
        if changed:
            log.debug(f"Run state: {self._state.value} -> {result.state.value}")
        self._state = result.state
        self._apply(result.effects)
        if changed and result.state is not RunState.COMPLETED:
            self._notify()
        return result.effects

    def _apply(self, effects: tuple[Effect, ...]) -> None:
        for effect in effects:
            if effect is Effect.SUSPEND_TRANSFER:
                self._gate.clear()
            elif effect is Effect.RESUME_TRANSFER:
                self._gate.set()
            elif effect is Effect.CANCEL_TRANSFER:
                self._cancel_requested = True
                if self._transfer and not self._transfer.done():
                    self._transfer.cancel()
                # Wake a paused worker so it can observe the cancellation
                self._gate.set()
            elif effect is Effect.DISCARD_QUEUE:
                discarded = len(self._queue)
                self._queue.clear()
                if discarded:
                    log.debug(f"Discarded {discarded} queued entries.")
            # DELIVER_RESULTS is awaited by the worker loop

    # --- Control operations ---

    async def start(
        self,
        entries: Iterable[PendingEntry],
        on_complete: Optional[CompletionCallback] = None,
    ) -> None:
        """
        Begins a new run over the entries in manifest order.

        An active run is superseded: it is stopped, its accepted items are
        delivered to its own callback, and all state is reset.
        """
        if is_active(self._state):
            log.info("[yellow]A run is already active; superseding it.[/yellow]")
            self.stop()
            await self.wait()

        self._queue = deque(entries)
        self._accepted = []
        self._failed = []
        self._total = len(self._queue)
        self._cancel_requested = False
        self._current = None
        self._on_complete = on_complete
        self._delivered = False
        self._gate.set()

        self._fire(RunEvent.START)
        log.debug(f"Starting run with {self._total} entries.")
        self._worker = asyncio.create_task(self._run())

    def pause(self) -> None:
        """Suspends the run and any in-flight transfer. Idempotent."""
        self._fire(RunEvent.PAUSE)

    def resume(self, on_complete: Optional[CompletionCallback] = None) -> None:
        """
        Resumes a paused run. A suspended transfer continues in place; if the
        transport dropped it, the entry is reissued from the queue head.
        """
        if on_complete is not None and is_active(self._state):
            self._on_complete = on_complete
        self._fire(RunEvent.RESUME)

    def stop(self) -> None:
        """
        Cancels the in-flight transfer and discards the queue. Entries not yet
        classified are dropped from the run. A no-op once the run completed.
        """
        self._fire(RunEvent.STOP)

    async def wait(self) -> list[AcceptedMedia]:
        """Waits for the current run to complete and returns its accepted items."""
        if self._worker is not None:
            await self._worker
        return list(self._accepted)

    # --- Worker ---

    async def _run(self) -> None:
        while True:
            if self._cancel_requested:
                effects = self._fire(RunEvent.CANCEL_OBSERVED)
                break
            if not self._gate.is_set():
                await self._gate.wait()
                continue
            if not self._queue:
                effects = self._fire(RunEvent.DRAINED)
                break

            entry = self._queue.popleft()
            outcome = await self._process(entry)
            if outcome is None:
                continue
            if self._cancel_requested:
                # Finished just as the stop landed; the run no longer takes results
                await self.processor.discard(outcome)
                continue
            self._record(outcome)

        if Effect.DELIVER_RESULTS in effects:
            await self._deliver()

    async def _process(self, entry: PendingEntry) -> Optional[EntryOutcome]:
        """
        Runs one entry as a cancellable transfer task. Returns None when the
        entry was dropped by a stop or requeued after an interrupted suspension.
        """
        self._current = entry
        self._transfer = asyncio.create_task(self.processor.process(entry, self._gate))
        try:
            return await self._transfer
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            log.debug(f"In-flight entry dropped by stop: {describe_entry(entry)}")
            return None
        except TransferInterruptedError as e:
            log.info(
                f"[yellow]Suspended transfer was lost ({e}); "
                "it will be retried from the start.[/yellow]"
            )
            self._queue.appendleft(entry)
            return None
        except Exception as e:
            log.error(
                f"[red]Unexpected error while processing {describe_entry(entry)}: "
                f"{e}[/red]",
                exc_info=log.getEffectiveLevel() == logging.DEBUG,
            )
            return FailedEntry(entry=entry, reason=FailureReason.UNEXPECTED, detail=str(e))
        finally:
            self._transfer = None
            self._current = None

    def _record(self, outcome: EntryOutcome) -> None:
        self.processor.account(outcome)
        if isinstance(outcome, AcceptedMedia):
            self._accepted.append(outcome)
        else:
            self._failed.append(outcome)
        self._notify()

    async def _deliver(self) -> None:
        self._notify()
        if self._delivered:
            return
        self._delivered = True
        log.debug(
            f"Run completed: {len(self._accepted)} accepted, "
            f"{len(self._failed)} failed, {self._total} total."
        )
        if self._on_complete is None:
            return
        result = self._on_complete(list(self._accepted))
        if inspect.isawaitable(result):
            await result
