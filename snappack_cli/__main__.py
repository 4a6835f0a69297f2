"""
Console entry point for snappack.

Runs the Typer app and turns anything that escapes a command into a rich
error panel and a non-zero exit status.
"""

import asyncio
import logging
import os
import sys

import typer
from rich.console import Console

from snappack_cli.cli.app import app
from snappack_cli.cli.formatters import format_error_with_suggestions
from snappack_cli.exceptions import SnapPackError

log = logging.getLogger("snappack_cli")


def _error_context(error: Exception) -> dict:
    """Names the failing command so the panel says where the error came from."""
    command = next((arg for arg in sys.argv[1:] if not arg.startswith("-")), None)
    context = {"command": command or "(none)"}
    if not isinstance(error, SnapPackError):
        context["type"] = "Unexpected"
    return context


def main() -> None:
    if os.name == "nt":
        try:
            sys.stdout.reconfigure(encoding="utf-8")
            sys.stderr.reconfigure(encoding="utf-8")
        except (TypeError, AttributeError):
            pass

    console = Console()

    try:
        app()
    except (typer.Exit, typer.Abort):
        pass
    except (KeyboardInterrupt, asyncio.CancelledError):
        # Downloads stop through the session signal handlers; this covers the rest
        console.print("\n[yellow]⚠️  Cancelled.[/yellow]")
        sys.exit(0)
    except Exception as e:
        console.print(f"\n{format_error_with_suggestions(e, _error_context(e))}")
        if not isinstance(e, SnapPackError):
            log.debug("Full traceback:", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
