"""Providers command for the baton CLI.

Shows every configured provider with install, circuit, rate-limit and
health state as seen by a fresh ProviderManager.
"""

from __future__ import annotations

from dataclasses import asdict
from pathlib import Path

import typer

from baton.core.errors import ConfigurationError
from baton.execution.provider_manager import ProviderManager

from ..helpers import load_config_or_exit
from ..output import console, create_providers_table, err_console, output_error, print_json


def providers(
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Path to baton.yaml (default: search)"
    ),
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output provider status as JSON"
    ),
) -> None:
    """List configured providers and whether each is available."""
    config = load_config_or_exit(config_file, err_console, json_output)
    try:
        manager = ProviderManager(config)
    except ConfigurationError as e:
        output_error(str(e), json_output=json_output)
        raise typer.Exit(2) from None

    rows = manager.status()
    if json_output:
        print_json({
            "default_provider": manager.default_provider,
            "fallback_chain": manager.fallback_chain(manager.default_provider),
            "providers": [asdict(row) for row in rows],
        })
        return

    console.print(create_providers_table(rows))
    chain = " → ".join([manager.default_provider, *manager.fallback_chain(manager.default_provider)])
    console.print(f"[dim]Fallback order:[/dim] {chain}", highlight=False)
