"""Rich output formatting for the baton CLI.

Centralizes colors, tables and panels so every command renders provider
state the same way. Responses go to stdout; diagnostics go to stderr.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Literal

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from baton.core.errors import NoProvidersAvailableError
from baton.execution.provider_manager import ProviderStatus

# =============================================================================
# Shared console instances
# =============================================================================

console = Console()
err_console = Console(stderr=True)


# =============================================================================
# Color schemes for status values
# =============================================================================


class StatusColors:
    """Color mappings for provider status values."""

    CIRCUIT_STATE: dict[str, str] = {
        "closed": "green",
        "half_open": "yellow",
        "open": "red",
    }

    @classmethod
    def get_circuit_color(cls, state: str) -> str:
        return cls.CIRCUIT_STATE.get(state, "white")

    @classmethod
    def get_health_color(cls, score: float) -> str:
        if score >= 80:
            return "green"
        if score > 50:
            return "yellow"
        return "red"


# =============================================================================
# Formatting helpers
# =============================================================================


def format_duration(seconds: float | None) -> str:
    """Format a duration in seconds (e.g., "5.2s", "3m 12s", "1h 30m")."""
    if seconds is None:
        return "N/A"

    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"


def format_timestamp(dt: datetime | None) -> str:
    """Format a datetime for display, or "-" if None."""
    if dt is None:
        return "-"
    return dt.strftime("%Y-%m-%d %H:%M:%S %Z").strip()


def print_json(data: Any) -> None:
    """Write JSON to stdout without Rich wrapping or markup."""
    typer.echo(json.dumps(data, indent=2, default=str))


# =============================================================================
# Tables and panels
# =============================================================================


def create_providers_table(rows: list[ProviderStatus]) -> Table:
    """Table of provider status rows."""
    table = Table(title="Providers", show_header=True, header_style="bold")
    table.add_column("Provider", style="cyan", no_wrap=True)
    table.add_column("Priority", justify="right")
    table.add_column("Installed")
    table.add_column("Circuit")
    table.add_column("Rate limited until")
    table.add_column("Health", justify="right")
    table.add_column("Status")

    for row in rows:
        name = f"{row.name} *" if row.current else row.name
        circuit_color = StatusColors.get_circuit_color(row.circuit_state)
        health_color = StatusColors.get_health_color(row.health_score)
        if not row.enabled:
            status = "[dim]disabled[/dim]"
        elif row.available:
            status = "[green]available[/green]"
        else:
            status = f"[red]{escape(row.reason or 'unavailable')}[/red]"
        if row.limited_models:
            status += f" [yellow](limited: {escape(', '.join(row.limited_models))})[/yellow]"
        table.add_row(
            name,
            str(row.priority),
            "[green]yes[/green]" if row.installed else "[red]no[/red]",
            f"[{circuit_color}]{row.circuit_state}[/{circuit_color}]",
            format_timestamp(row.rate_limited_until),
            f"[{health_color}]{row.health_score:.0f}[/{health_color}]",
            status,
        )
    return table


def create_failure_panel(error: NoProvidersAvailableError) -> Panel:
    """Panel listing every attempted provider with its last failure."""
    lines = [f"[bold]{escape(error.reason)}[/bold]", ""]
    for name in error.attempted_providers:
        lines.append(f"[cyan]{name}[/cyan]: {escape(error.errors[name])}")
    if error.next_reset_time is not None:
        lines.append("")
        lines.append(f"Earliest rate-limit reset: {format_timestamp(error.next_reset_time)}")
    return Panel("\n".join(lines), title="No providers available", border_style="red")


# =============================================================================
# Error formatting
# =============================================================================


def output_error(
    message: str,
    *,
    hints: list[str] | None = None,
    severity: Literal["error", "warning"] = "error",
    json_output: bool = False,
    **json_extras: Any,
) -> None:
    """Output a formatted error/warning with optional hints and JSON alternative.

    - Rich mode: colored prefix on stderr, then dim hints
    - JSON mode: structured dict on stdout
    """
    if json_output:
        result: dict[str, Any] = {"success": False, "message": message}
        if hints:
            result["hints"] = hints
        result.update(json_extras)
        print_json(result)
        return

    color = "red" if severity == "error" else "yellow"
    label = "Error" if severity == "error" else "Warning"
    err_console.print(f"[{color}]{label}:[/{color}] {escape(message)}", highlight=False)

    if hints:
        err_console.print()
        err_console.print("[dim]Hints:[/dim]")
        for hint in hints:
            err_console.print(f"  - {hint}")
