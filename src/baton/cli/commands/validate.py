"""Validate command for the baton CLI.

Checks a configuration file in three layers: YAML syntax, pydantic schema,
and provider cross-references (default and fallback providers configured,
every provider name known to the registry).

Exit codes:
  0: Valid
  1: Invalid (schema or cross-reference errors)
  2: Cannot validate (file unreadable, YAML unparseable)
"""

from __future__ import annotations

from pathlib import Path

import typer
import yaml

from baton.core.config import OrchestratorConfig
from baton.core.errors import ConfigurationError
from baton.execution.provider_manager import resolve_config
from baton.providers.registry import default_registry

from ..output import console, output_error, print_json


def validate(
    config_file: Path = typer.Argument(..., help="Path to a baton.yaml file"),
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Output validation results as JSON"
    ),
) -> None:
    """Validate an orchestrator configuration file."""
    try:
        raw_yaml = config_file.read_text(encoding="utf-8")
    except OSError as e:
        output_error(f"Cannot read config file: {e}", json_output=json_output, valid=False)
        raise typer.Exit(2) from None

    try:
        data = yaml.safe_load(raw_yaml)
    except yaml.YAMLError as e:
        output_error(f"YAML syntax error: {e}", json_output=json_output, valid=False)
        raise typer.Exit(2) from None

    try:
        config = OrchestratorConfig.from_dict(data)
        resolved = resolve_config(config, default_registry)
    except ConfigurationError as e:
        output_error(str(e), json_output=json_output, valid=False)
        raise typer.Exit(1) from None

    enabled = [name for name, cfg in resolved.providers.items() if cfg.enabled]
    if json_output:
        print_json({
            "valid": True,
            "default_provider": resolved.default_provider,
            "fallback_providers": resolved.fallback_providers,
            "enabled_providers": enabled,
        })
        return

    console.print("[green]✓[/green] YAML syntax valid")
    console.print("[green]✓[/green] Schema validation passed")
    console.print("[green]✓[/green] Provider references resolved")
    console.print()
    console.print("[dim]Configuration summary:[/dim]")
    console.print(f"  Default provider: {resolved.default_provider}")
    console.print(f"  Fallbacks: {', '.join(resolved.fallback_providers) or '-'}")
    console.print(f"  Enabled providers: {', '.join(enabled)}")
