"""Cursor agent CLI provider (``cursor-agent -p``, prompt on stdin)."""

from __future__ import annotations

from baton.core.errors import ErrorCategory
from baton.providers.base import Provider, ProviderCapabilities, SendOptions


class CursorProvider(Provider):
    """Run prompts via cursor-agent in print mode."""

    name = "cursor"
    binary_name = "cursor-agent"

    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        cmd = [executable, "-p"]

        model = self.resolve_model(options)
        if model:
            cmd.extend(["--model", model])
        if options.session:
            cmd.extend(["--resume", options.session])
        if options.dangerous_mode:
            cmd.append("--force")

        return cmd, prompt

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            streaming=True,
            mcp=True,
            dangerous_mode=True,
            tool_use=True,
            sessions=True,
        )

    def error_patterns(self) -> dict[ErrorCategory, list[str]]:
        return {
            ErrorCategory.RATE_LIMITED: [r"you've hit your usage limit", r"slow pool"],
            ErrorCategory.AUTH_EXPIRED: [r"not authenticated", r"cursor-agent login"],
            ErrorCategory.QUOTA_EXCEEDED: [r"upgrade to pro", r"out of fast requests"],
        }
