"""OpenAI Codex CLI provider (``codex exec [flags] -- <prompt>``)."""

from __future__ import annotations

from baton.core.errors import ErrorCategory
from baton.providers.base import Provider, ProviderCapabilities, SendOptions


class CodexProvider(Provider):
    """Run prompts via ``codex exec``; the prompt is passed as an argument.

    The prompt follows a ``--`` separator so a prompt starting with ``-``
    is never parsed as an option.
    """

    name = "codex"
    binary_name = "codex"

    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        cmd = [executable, "exec"]

        if options.session:
            cmd.extend(["--session", options.session])
        model = self.resolve_model(options)
        if model:
            cmd.extend(["--model", model])
        if options.dangerous_mode:
            cmd.append("--dangerously-bypass-approvals-and-sandbox")

        cmd.extend(["--", prompt])
        return cmd, None

    def command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        # Default flags go before the separator
        argv, stdin = self.build_command(prompt, options, executable)
        return [*argv[:-2], *self.config.default_flags, *argv[-2:]], stdin

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            mcp=True,
            dangerous_mode=True,
            tool_use=True,
            sessions=True,
        )

    def error_patterns(self) -> dict[ErrorCategory, list[str]]:
        return {
            ErrorCategory.QUOTA_EXCEEDED: [r"insufficient_quota"],
            ErrorCategory.AUTH_EXPIRED: [r"codex login", r"not logged in"],
            ErrorCategory.PERMANENT: [r"context_length_exceeded"],
        }
