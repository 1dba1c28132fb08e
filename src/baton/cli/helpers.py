"""Shared utilities for baton CLI commands.

- Logging configuration from global options and the loaded config
- Config loading with consistent error output
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

import typer
from rich.console import Console

from baton.core.config import LogConfig, OrchestratorConfig, load_config
from baton.core.errors import ConfigurationError
from baton.core.logging import configure_logging

from .output import output_error

# =============================================================================
# Logging configuration
# =============================================================================


@dataclass
class CliLoggingConfig:
    """Logging options given on the command line (None = not given)."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    file: Path | None = None
    format: Literal["json", "console"] | None = None


_log_config = CliLoggingConfig()

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")
_LOG_FORMATS = ("json", "console")


def set_log_level(level: str) -> None:
    upper = level.upper()
    if upper not in _LOG_LEVELS:
        raise typer.BadParameter(f"must be one of {', '.join(_LOG_LEVELS)}")
    _log_config.level = upper  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.file = path


def set_log_format(fmt: str) -> None:
    lower = fmt.lower()
    if lower not in _LOG_FORMATS:
        raise typer.BadParameter(f"must be one of {', '.join(_LOG_FORMATS)}")
    _log_config.format = lower  # type: ignore[assignment]


def configure_global_logging(console: Console, log_config: LogConfig | None = None) -> None:
    """Configure logging from CLI options, falling back to the config file.

    Safe to call more than once: the second call (after a config file has
    been loaded) applies the file's settings for options not given on the
    command line.

    Raises:
        typer.Exit: If logging configuration fails.
    """
    defaults = log_config or LogConfig()
    try:
        configure_logging(
            level=_log_config.level or defaults.level,
            format=_log_config.format or defaults.format,
            file_path=_log_config.file or defaults.file_path,
        )
    except OSError as e:
        console.print(f"[red]Logging configuration error:[/red] {e}")
        raise typer.Exit(1) from None


def reset_logging_state() -> None:
    """Forget CLI logging options (for tests)."""
    global _log_config
    _log_config = CliLoggingConfig()


# =============================================================================
# Config loading
# =============================================================================


def load_config_or_exit(
    path: Path | None,
    console: Console,
    json_output: bool = False,
) -> OrchestratorConfig:
    """Load configuration and apply its logging settings.

    Raises:
        typer.Exit: With code 2 if the configuration cannot be loaded.
    """
    try:
        config = load_config(path)
    except ConfigurationError as e:
        output_error(
            str(e),
            hints=["Run 'baton validate <file>' for details"],
            json_output=json_output,
        )
        raise typer.Exit(2) from None
    configure_global_logging(console, config.logging)
    return config
