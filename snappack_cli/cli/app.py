"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import shutil
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from snappack_cli import __version__
from snappack_cli.core.download_manager import DownloadManager
from snappack_cli.exceptions import SnapPackError
from snappack_cli.models.config import DEFAULT_MEDIA_DIR, DownloadConfig
from snappack_cli.storage.config_manager import ConfigManager
from snappack_cli.storage.library import MediaLibrary
from snappack_cli.utils.manifest import load_manifest
from snappack_cli.utils.path import (
    DEFAULT_EXPORT_TEMPLATE,
    ExportPathFormatter,
    create_dir,
)

from .formatters import (
    print_config,
    print_entries_table,
    print_export_template_help,
    print_failed_table,
    print_library_table,
    print_stats_table,
    print_summary_panel,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("snappack_cli")

app = typer.Typer(
    name="snappack",
    help=(
        "Download your Saved Media export to disk, keeping only files that really"
        " decode. Use 'snappack <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "snappack-cli"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> DownloadConfig:
    return ConfigManager(CONFIG_FILE).load_config(cli_options, require_file=False)


def _open_library(config: DownloadConfig) -> MediaLibrary:
    return MediaLibrary(CONFIG_DIR, config.media_path)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """SnapPack Saved Media Downloader"""
    if version:
        console.print(f"[bold]snappack-cli[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "INFO"
    if verbose >= 2:
        log_level = "DEBUG"
    logging.getLogger("snappack_cli").setLevel(log_level)

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]snappack init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        print_config(CONFIG_FILE, ConfigManager(CONFIG_FILE).read_raw())
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    media_dir: str = typer.Option(
        DEFAULT_MEDIA_DIR, "--media-dir", "-m", help="Where downloaded media is stored."
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration without asking."
    ),
):
    """Create a configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    ConfigManager(CONFIG_FILE).save_new_config({"media_dir": media_dir})
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    if shutil.which("ffmpeg") is None:
        console.print(
            "[yellow]⚠️  ffmpeg was not found on PATH; videos will fail validation"
            " until it is installed.[/yellow]"
        )
    console.print("Ready! Try: [cyan]snappack download memories_history.json[/cyan]")


@app.command(name="download")
def download_command(
    manifest: Path = typer.Argument(  # noqa: B008
        ..., help="The Saved Media export (JSON) to download.", exists=True, dir_okay=False
    ),
    media_dir: str | None = typer.Option(
        None, "--media-dir", "-m", help="Override the media directory."
    ),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", help="Per-request timeout in seconds (default 30)."
    ),
    auto_clean: bool | None = typer.Option(
        None,
        "--auto-clean/--no-auto-clean",
        help="Sweep broken files from the library after downloading.",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="List the manifest entries without downloading."
    ),
):
    """Download every item of a Saved Media export."""
    cli_options = {
        key: value
        for key, value in {
            "media_dir": media_dir,
            "request_timeout": timeout,
            "auto_clean": auto_clean,
        }.items()
        if value is not None
    }
    cli_options["dry_run"] = dry_run

    try:
        config = _load_config(cli_options)
    except SnapPackError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e

    entries = load_manifest(manifest)
    if not entries:
        console.print("[yellow]⚠️  No entries found in the manifest. Nothing to do.[/yellow]")
        raise typer.Exit()

    if config.dry_run:
        print_entries_table(entries)
        raise typer.Exit()

    console.print(f"[green]✓ Read {len(entries)} entries from '{manifest.name}'.[/green]")

    async def _download_async():
        manager = None
        duration = 0.0
        async with ProgressManager(console=console) as progress_manager:
            try:
                library = _open_library(config)
                manager = DownloadManager(config, library, progress_manager)
                console.print("[bold cyan]📥 Starting download session...[/bold cyan]")
                console.print(
                    "[dim]Ctrl-C stops gracefully; send SIGUSR1 to pause or resume.[/dim]"
                )
                start_time = time.monotonic()
                await manager.execute_downloads(entries)
                duration = time.monotonic() - start_time
            except SnapPackError as e:
                console.print(f"[bold red]Error: {e}[/bold red]")
                raise typer.Exit(code=1) from e

        if manager:
            print_summary_panel(manager.stats, duration, stopped=manager.was_stopped)
            print_failed_table(manager.pipeline.failed)
            if config.save_history:
                manager.save_session_stats()

    asyncio.run(_download_async())


@app.command(name="library")
def library_command(
    vault: bool = typer.Option(False, "--vault", help="Show only vault items."),
    show_all: bool = typer.Option(False, "--all", help="Show gallery and vault items."),
):
    """List downloaded media."""

    async def _list():
        config = _load_config()
        library = _open_library(config)
        if show_all:
            print_library_table(await library.list_media(), title="All Media")
        elif vault:
            print_library_table(await library.list_media(archived=True), title="Vault")
        else:
            print_library_table(await library.list_media(archived=False), title="Gallery")

    asyncio.run(_list())


async def _resolve_ids(library: MediaLibrary, prefixes: list[str]) -> list[str]:
    """Expands ID prefixes (as shown by 'library') to full IDs."""
    items = await library.list_media()
    resolved = []
    for prefix in prefixes:
        matches = [item.id for item in items if item.id.startswith(prefix)]
        if len(matches) == 1:
            resolved.append(matches[0])
        elif not matches:
            console.print(f"[yellow]⚠️  No item matches '{prefix}'.[/yellow]")
        else:
            console.print(f"[yellow]⚠️  '{prefix}' is ambiguous ({len(matches)} items).[/yellow]")
    return resolved


def _set_vault_flag(ids: list[str], locked: bool) -> None:
    async def _update():
        config = _load_config()
        library = _open_library(config)
        full_ids = await _resolve_ids(library, ids)
        updated = await library.set_archived(full_ids, locked)
        where = "into the vault" if locked else "back to the gallery"
        console.print(f"[green]✓ Moved {updated} item(s) {where}.[/green]")

    asyncio.run(_update())


@app.command()
def lock(ids: list[str] = typer.Argument(..., help="Item IDs or ID prefixes.")):  # noqa: B008
    """Move items into the private vault."""
    _set_vault_flag(ids, True)


@app.command()
def unlock(ids: list[str] = typer.Argument(..., help="Item IDs or ID prefixes.")):  # noqa: B008
    """Move items out of the private vault."""
    _set_vault_flag(ids, False)


@app.command()
def delete(
    ids: list[str] = typer.Argument(..., help="Item IDs or ID prefixes."),  # noqa: B008
    force: bool = typer.Option(False, "--force", "-f", help="Bypass the confirmation prompt."),
):
    """Delete items and their files."""
    if not force and not typer.confirm(f"Delete {len(ids)} item(s) and their files?"):
        console.print("[yellow]Operation cancelled.[/yellow]")
        raise typer.Abort()

    async def _delete():
        config = _load_config()
        library = _open_library(config)
        full_ids = await _resolve_ids(library, ids)
        removed = await library.delete_media(full_ids)
        console.print(f"[green]✓ Deleted {removed} item(s).[/green]")

    asyncio.run(_delete())


@app.command()
def clean():
    """Remove library items whose files are missing or broken."""

    async def _clean():
        config = _load_config()
        library = _open_library(config)
        console.print("[cyan]Checking library files...[/cyan]")
        removed = await library.clean_broken_media()
        if removed:
            console.print(f"[green]✓ Removed {len(removed)} broken item(s).[/green]")
        else:
            console.print("[green]✓ All library files look healthy.[/green]")

    asyncio.run(_clean())


@app.command()
def export(
    destination: Path = typer.Argument(..., help="Directory to copy files into."),  # noqa: B008
    vault: bool = typer.Option(False, "--vault", help="Export vault items instead."),
    template: str = typer.Option(
        DEFAULT_EXPORT_TEMPLATE, "--template", help="File name template."
    ),
    template_help: bool = typer.Option(
        False, "--template-help", help="Show the template placeholders and exit."
    ),
):
    """Copy library files out under readable names."""
    if template_help:
        print_export_template_help()
        raise typer.Exit()
    try:
        formatter = ExportPathFormatter(template)
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    async def _export():
        config = _load_config()
        library = _open_library(config)
        items = await library.list_media(archived=vault)
        create_dir(destination)
        copied = 0
        for item in items:
            source = library.resolve(item)
            target = destination / formatter.format_name(item)
            try:
                await asyncio.to_thread(shutil.copy2, source, target)
                copied += 1
            except OSError as e:
                log.warning(f"[yellow]Could not export '{source.name}': {e}[/yellow]")
        console.print(f"[green]✓ Exported {copied} of {len(items)} item(s) to '{destination}'.[/green]")

    asyncio.run(_export())


@app.command()
def stats():
    """Show media library statistics and disk usage."""

    async def _get_stats():
        try:
            config = _load_config()
            library = _open_library(config)
            await library.calculate_used_storage()
            print_stats_table(await library.get_stats())
        except SnapPackError as e:
            console.print(f"[red]Error accessing library: {e}[/red]")
            raise typer.Exit(code=1) from e

    asyncio.run(_get_stats())


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config = ConfigManager(CONFIG_FILE).load_config()
        print_validation_table(config)
    except SnapPackError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
