"""Send command for the baton CLI.

Runs one Conductor request and prints the response text to stdout.

Exit codes:
  0: Response received
  1: Request failed (escalated error or no provider available)
  2: Bad input (empty prompt, invalid configuration, unknown provider)
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import typer

from baton.core.config import OrchestratorConfig
from baton.core.errors import ConfigurationError, NoProvidersAvailableError, ProviderError
from baton.execution.conductor import Conductor
from baton.providers.base import Response

from ..helpers import load_config_or_exit
from ..output import (
    create_failure_panel,
    err_console,
    format_duration,
    output_error,
    print_json,
)


def build_conductor(config: OrchestratorConfig) -> Conductor:
    """Conductor for one CLI invocation."""
    return Conductor.from_config(config)


def _response_dict(response: Response) -> dict[str, Any]:
    data: dict[str, Any] = {
        "success": True,
        "text": response.text,
        "provider": response.provider,
        "model": response.model,
        "duration_seconds": round(response.duration_seconds, 3),
        "session_id": response.session_id,
    }
    if response.usage is not None:
        data["usage"] = {
            "input_tokens": response.usage.input_tokens,
            "output_tokens": response.usage.output_tokens,
            "total_tokens": response.usage.total_tokens,
            "cost_usd": response.usage.cost_usd,
        }
    return data


def send(
    prompt: str = typer.Argument(
        ...,
        help="Prompt text, or '-' to read the prompt from stdin",
    ),
    provider: str | None = typer.Option(
        None, "--provider", "-p", help="Preferred provider (name or alias)"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Model to request"),
    timeout: float | None = typer.Option(
        None, "--timeout", "-t", min=0.1, help="Per-attempt timeout in seconds"
    ),
    dangerous: bool = typer.Option(
        False, "--dangerous", help="Let the provider run tools without confirmation"
    ),
    session: str | None = typer.Option(None, "--session", help="Session to resume"),
    config_file: Path | None = typer.Option(
        None, "--config", "-c", help="Path to baton.yaml (default: search)"
    ),
    json_output: bool = typer.Option(
        False, "--json", "-j", help="Print the response as JSON"
    ),
) -> None:
    """Send a prompt to the best available provider, failing over as needed."""
    if prompt == "-":
        prompt = sys.stdin.read()
    if not prompt.strip():
        output_error("Prompt is empty", json_output=json_output)
        raise typer.Exit(2)

    config = load_config_or_exit(config_file, err_console, json_output)

    options: dict[str, Any] = {"dangerous_mode": dangerous}
    if model is not None:
        options["model"] = model
    if timeout is not None:
        options["timeout"] = timeout
    if session is not None:
        options["session"] = session

    try:
        conductor = build_conductor(config)
        response = asyncio.run(conductor.send_message(prompt, provider=provider, **options))
    except ConfigurationError as e:
        output_error(str(e), json_output=json_output)
        raise typer.Exit(2) from None
    except NoProvidersAvailableError as e:
        if json_output:
            print_json({
                "success": False,
                "message": e.reason,
                "errors": e.errors,
                "next_reset_time": e.next_reset_time,
            })
        else:
            err_console.print(create_failure_panel(e))
        raise typer.Exit(1) from None
    except ProviderError as e:
        output_error(
            e.message,
            json_output=json_output,
            provider=e.provider,
            category=e.category.value,
        )
        raise typer.Exit(1) from None

    if json_output:
        print_json(_response_dict(response))
        return

    typer.echo(response.text)
    err_console.print(
        f"[dim]{response.provider} · {format_duration(response.duration_seconds)}[/dim]",
        highlight=False,
    )
