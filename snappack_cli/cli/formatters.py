"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from snappack_cli.models.config import DownloadConfig
from snappack_cli.models.media import AcceptedMedia, FailedEntry, PendingEntry
from snappack_cli.models.stats import DownloadStats
from snappack_cli.utils.formatting import (
    FAILURE_LABELS,
    describe_failure,
    format_duration,
    format_size,
    shorten_url,
)
from snappack_cli.utils.path import DEFAULT_EXPORT_TEMPLATE, parse_media_url


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Check the values in your configuration file.",
            "• Run `snappack init --force` to write a fresh configuration.",
            "• Use `snappack --show-config` to see what is loaded.",
        ],
        "LibraryError": [
            "• The media library database may be locked by another process.",
            "• Check that the configuration directory is writable.",
        ],
        "PersistenceError": [
            "• Check that the media directory exists and is writable.",
            "• Check the free space on the target disk with `snappack stats`.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• Download links in exports expire; request a fresh export.",
        ],
        "TimeoutError": [
            "• A download timed out, which may indicate network throttling.",
            "• Raise the timeout with `--timeout`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: DownloadConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    table.add_row("Media Directory:", f"[dim]{config.media_path}[/dim]")
    table.add_row("Request Timeout:", f"{config.request_timeout:g}s")
    table.add_row("Integrity Threshold:", f"{config.min_payload_bytes} bytes")
    table.add_row("ffmpeg:", config.ffmpeg_binary)
    table.add_row("Auto Clean:", "✓ Enabled" if config.auto_clean else "✗ Disabled")
    table.add_row(
        "Session History:", "✓ Enabled" if config.save_history else "✗ Disabled"
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_stats_table(stats_data: dict[str, Any]):
    """Displays media library statistics."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")
    table.add_row("Items:", f"[green]{stats_data.get('total', 0)}[/green]")
    table.add_row("Photos:", str(stats_data.get("Photo", 0)))
    table.add_row("Videos:", str(stats_data.get("Video", 0)))
    table.add_row("In Vault:", f"[magenta]{stats_data.get('vault', 0)}[/magenta]")
    table.add_row("Used Storage:", format_size(stats_data.get("used_storage", 0)))
    table.add_row(
        "Available Space:", format_size(stats_data.get("available_space", 0))
    )
    console.print(
        Panel(table, title="[bold]📚 Media Library[/bold]", border_style="cyan", expand=False)
    )


def print_library_table(items: Sequence[AcceptedMedia], title: str = "Gallery"):
    """Lists library items, newest first."""
    console = Console()
    if not items:
        console.print("[dim]No media here yet.[/dim]")
        return
    table = Table(title=f"{title} ({len(items)})", box=box.SIMPLE_HEAVY)
    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Captured", style="cyan")
    table.add_column("Kind")
    table.add_column("Location", style="yellow")
    table.add_column("Size", justify="right", style="green")
    table.add_column("Vault", justify="center")
    for item in items:
        table.add_row(
            item.id[:12],
            item.captured_at.strftime("%Y-%m-%d %H:%M"),
            item.media_kind.value,
            item.location_label or "—",
            format_size(item.size_bytes),
            "🔒" if item.is_archived else "",
        )
    console.print(table)


def print_entries_table(entries: Sequence[PendingEntry]):
    """Dry-run view of a parsed manifest."""
    console = Console()
    table = Table(title=f"Manifest Entries ({len(entries)})", box=box.SIMPLE_HEAVY)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Captured", style="cyan")
    table.add_column("Kind")
    table.add_column("Primary", justify="center")
    table.add_column("Fallback", justify="center")
    table.add_column("Status")

    def mark(url: str) -> str:
        if not url:
            return "[dim]—[/dim]"
        return "[green]✓[/green]" if parse_media_url(url) else "[red]invalid[/red]"

    for i, entry in enumerate(entries, 1):
        status = (
            "[green]ready[/green]"
            if entry.is_schedulable
            else "[red]no download link[/red]"
        )
        table.add_row(
            str(i),
            entry.captured_at or "—",
            entry.media_kind.value,
            mark(entry.primary_url),
            mark(entry.fallback_url),
            status,
        )
    console.print(table)


def print_failed_table(failed: Sequence[FailedEntry]):
    """Lists failed entries with their classification."""
    if not failed:
        return
    console = Console()
    table = Table(title=f"Failed Entries ({len(failed)})", box=box.SIMPLE_HEAVY)
    table.add_column("Captured", style="cyan")
    table.add_column("Kind")
    table.add_column("Reason", style="red")
    table.add_column("URL", style="dim")
    for item in failed:
        table.add_row(
            item.entry.captured_at or "—",
            item.entry.media_kind.value,
            describe_failure(item),
            shorten_url(item.entry.first_url) or "—",
        )
    console.print(table)


def print_summary_panel(stats: DownloadStats, duration_s: float, stopped: bool = False):
    """Displays the final summary of the download session."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row(
        "✓ Saved:",
        f"[bold green]{stats.entries_accepted}[/bold green]"
        f" [dim]({stats.photos_accepted} photos, {stats.videos_accepted} videos)[/dim]",
    )
    if stats.fallback_successes:
        stats_table.add_row(
            "↻ Via Fallback:", f"[yellow]{stats.fallback_successes}[/yellow]"
        )
    for reason, count in stats.failures.items():
        stats_table.add_row(
            f"✗ {FAILURE_LABELS.get(reason, reason.value)}:",
            f"[bold red]{count}[/bold red]",
        )
    not_processed = stats.entries_total - stats.entries_accepted - stats.entries_failed
    if not_processed > 0:
        stats_table.add_row("○ Not Processed:", f"[yellow]{not_processed}[/yellow]")

    stats_table.add_row("", "")
    stats_table.add_row("Downloaded:", f"[cyan]{format_size(stats.bytes_downloaded)}[/cyan]")
    stats_table.add_row("Stored:", f"[cyan]{format_size(stats.bytes_written)}[/cyan]")
    avg_speed = stats.bytes_downloaded / duration_s if duration_s > 0 else 0
    stats_table.add_row("Avg. Speed:", f"[magenta]{format_size(avg_speed)}/s[/magenta]")
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")

    if stopped:
        title = "⏹ [bold]Download Stopped[/bold]"
        border_color = "yellow"
    else:
        title = "📥 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    console.print()


def print_export_template_help():
    """Displays the placeholders available to export name templates."""
    console = Console()
    table = Table(box=box.ROUNDED, title="[bold]Export Name Placeholders[/bold]")
    table.add_column("Placeholder", style="bold magenta", no_wrap=True)
    table.add_column("Description")
    table.add_column("Example")
    table.add_row("{date}", "Capture date.", "'2023-05-01'")
    table.add_row("{time}", "Capture time (UTC).", "'12-30-00'")
    table.add_row("{kind}", "Media kind.", "'Photo' or 'Video'")
    table.add_row("{location}", "Location label, or 'Unknown'.", "'Berlin'")
    table.add_row("{id}", "First 8 characters of the item ID (required).", "'3f2a9c1e'")
    table.add_row("{ext}", "File extension.", "'jpg' or 'mp4'")
    console.print(table)
    console.print(f"[bold]Default:[/bold] [cyan]{DEFAULT_EXPORT_TEMPLATE}[/cyan]")
