"""baton CLI - typer app assembly.

Package structure:
    cli/
    ├── __init__.py           # This file - app assembly and global options
    ├── helpers.py            # Logging and config loading shared by commands
    ├── output.py             # Rich formatting
    └── commands/
        ├── send.py           # send command
        ├── providers.py      # providers command
        └── validate.py       # validate command
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer

from baton import __version__

from . import helpers as helpers
from .commands import providers, send, validate
from .helpers import configure_global_logging, set_log_file, set_log_format, set_log_level
from .output import console, err_console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="baton",
    help="Route prompts to AI coding-agent CLIs with automatic failover",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"baton v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="BATON_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="BATON_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json or console",
            envvar="BATON_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """baton - provider orchestration for AI coding-agent CLIs."""
    configure_global_logging(err_console)


# =============================================================================
# Command registration
# =============================================================================

app.command()(send)
app.command()(providers)
app.command()(validate)


__all__ = ["app", "main", "console", "helpers"]
