"""
Manages a Rich Live display for a download run: overall progress, the entry
currently in flight, run state, and running accepted/failed counts.
"""

import asyncio
from datetime import datetime

from rich.console import Console, Group
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from snappack_cli.core.pipeline import RunSnapshot
from snappack_cli.core.state import RunState
from snappack_cli.utils.formatting import describe_entry, describe_failure

STATE_STYLES = {
    RunState.IDLE: ("Idle", "dim"),
    RunState.RUNNING: ("Downloading", "cyan"),
    RunState.PAUSED: ("Paused", "yellow"),
    RunState.STOPPING: ("Stopping", "red"),
    RunState.COMPLETED: ("Completed", "green"),
}


class ProgressManager:
    """Renders pipeline snapshots; register ``on_snapshot`` as a pipeline listener."""

    RECENT_FAILURES = 5

    def __init__(self, console: Console, dry_run: bool = False):
        self.console = console
        self.dry_run = dry_run

        self.overall_progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            MofNCompleteColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
        )
        self._overall_task_id: TaskID | None = None
        self._live: Live | None = None
        self._layout: Layout | None = None
        self._snapshot: RunSnapshot | None = None
        self._start_time: datetime | None = None

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="progress", size=5),
            Layout(name="failures", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        if self._start_time:
            elapsed = int((datetime.now() - self._start_time).total_seconds())
            elapsed_str = f"{elapsed // 3600:02d}:{(elapsed % 3600) // 60:02d}:{elapsed % 60:02d}"
        else:
            elapsed_str = "00:00:00"
        state = self._snapshot.state if self._snapshot else RunState.IDLE
        label, style = STATE_STYLES[state]

        header_text = Text()
        header_text.append("📥 SnapPack ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(label, style=f"bold {style}")
        header_text.append(" │ ", style="dim")
        header_text.append(f"Session: {elapsed_str}", style="yellow")
        return Panel(header_text, border_style="cyan")

    def _generate_progress_panel(self) -> Panel:
        stats = Table.grid(padding=(0, 2))
        stats.add_column(style="bold cyan", justify="right")
        stats.add_column(style="white")
        stats.add_column(style="bold cyan", justify="right")
        stats.add_column(style="white")
        snap = self._snapshot
        accepted = len(snap.accepted) if snap else 0
        failed = len(snap.failed) if snap else 0
        pending = len(snap.pending) if snap else 0
        stats.add_row(
            "Saved:",
            f"[green]{accepted}[/green]",
            "Failed:",
            f"[red]{failed}[/red]",
        )
        current = describe_entry(snap.current) if snap and snap.current else "—"
        stats.add_row("Pending:", f"[cyan]{pending}[/cyan]", "Now:", f"[dim]{current}[/dim]")
        return Panel(
            Group(self.overall_progress, stats),
            title="[bold]📊 Progress[/bold]",
            border_style="blue",
        )

    def _generate_failures_panel(self) -> Panel:
        failures = self._snapshot.failed if self._snapshot else ()
        if not failures:
            return Panel(
                Text("No failures so far.", style="dim italic", justify="center"),
                title="[bold]⚠ Recent Failures[/bold]",
                border_style="green",
            )
        table = Table.grid(padding=(0, 2))
        table.add_column(style="white")
        table.add_column(style="red")
        for failed in failures[-self.RECENT_FAILURES :]:
            table.add_row(describe_entry(failed.entry), describe_failure(failed))
        return Panel(
            table,
            title=f"[bold]⚠ Recent Failures ({len(failures)})[/bold]",
            border_style="red",
        )

    def _update_display(self) -> None:
        if self.dry_run or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["progress"].update(self._generate_progress_panel())
        self._layout["failures"].update(self._generate_failures_panel())

    def initialize_session(self, total_entries: int) -> None:
        self._start_time = datetime.now()
        if not self.dry_run:
            self._overall_task_id = self.overall_progress.add_task(
                "Overall Progress", total=total_entries, start=True
            )
        self._update_display()

    def on_snapshot(self, snapshot: RunSnapshot) -> None:
        """Pipeline listener: mirrors the latest snapshot on screen."""
        self._snapshot = snapshot
        if self._overall_task_id is not None and not self.dry_run:
            label, _ = STATE_STYLES[snapshot.state]
            self.overall_progress.update(
                self._overall_task_id,
                completed=snapshot.processed,
                total=snapshot.total,
                description=label,
            )
        self._update_display()

    async def __aenter__(self) -> "ProgressManager":
        if self.dry_run:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._live and not self.dry_run:
            await asyncio.sleep(0.2)
            self._live.stop()
