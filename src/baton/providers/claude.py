"""Claude Code CLI provider.

Invokes ``claude --print --output-format=json`` with the prompt on stdin.
The JSON result carries the response text, session id, token usage and
cost; plain-text output is accepted as well.
"""

from __future__ import annotations

import json
from typing import Any

from baton.core.errors import ErrorCategory
from baton.providers.base import (
    Provider,
    ProviderCapabilities,
    Response,
    SendOptions,
    TokenUsage,
)
from baton.providers.executor import CommandResult


class ClaudeProvider(Provider):
    """Run prompts via the Claude CLI."""

    name = "claude"
    binary_name = "claude"

    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        cmd = [executable, "--print", "--output-format=json"]

        model = self.resolve_model(options)
        if model:
            cmd.extend(["--model", model])
        if options.session:
            cmd.extend(["--resume", options.session])
        if options.dangerous_mode:
            cmd.append("--dangerously-skip-permissions")

        return cmd, prompt

    def parse_output(self, result: CommandResult, model: str | None) -> Response:
        payload = _load_result(result.stdout)
        if payload is None:
            return super().parse_output(result, model)

        text = str(payload.get("result", ""))
        if payload.get("is_error"):
            raise self.failure(text or "claude reported an error")

        return Response(
            text=text.strip(),
            exit_code=result.exit_code,
            duration_seconds=result.duration_seconds,
            provider=self.name,
            model=model,
            usage=_usage(payload),
            session_id=payload.get("session_id"),
        )

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            streaming=True,
            mcp=True,
            dangerous_mode=True,
            vision=True,
            tool_use=True,
            sessions=True,
        )

    def error_patterns(self) -> dict[ErrorCategory, list[str]]:
        return {
            ErrorCategory.RATE_LIMITED: [
                r"usage limit reached",
                r"\d+-hour limit",
                r"limit.{0,10}resets?",
            ],
            ErrorCategory.AUTH_EXPIRED: [
                r"invalid api key",
                r"please run /login",
                r"oauth token (has )?expired",
            ],
            ErrorCategory.TRANSIENT: [r"overloaded_error", r"api_error"],
            ErrorCategory.PERMANENT: [r"prompt is too long", r"invalid_request_error"],
        }


def _load_result(stdout: str) -> dict[str, Any] | None:
    """Parse the final JSON result object, or None for plain-text output."""
    text = stdout.strip()
    if not text.startswith("{"):
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None


def _usage(payload: dict[str, Any]) -> TokenUsage | None:
    usage = payload.get("usage")
    if not isinstance(usage, dict):
        return None
    cost = payload.get("total_cost_usd")
    return TokenUsage(
        input_tokens=_count(usage.get("input_tokens")),
        output_tokens=_count(usage.get("output_tokens")),
        cost_usd=float(cost) if isinstance(cost, (int, float)) and not isinstance(cost, bool) else None,
    )


def _count(value: Any) -> int:
    """Token count from a usage field; malformed values count as zero."""
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError, OverflowError):
        return 0
