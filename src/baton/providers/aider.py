"""Aider CLI provider (``aider --yes-always --message <prompt>``)."""

from __future__ import annotations

from baton.core.errors import ErrorCategory
from baton.providers.base import Provider, ProviderCapabilities, SendOptions


class AiderProvider(Provider):
    """Run prompts via aider.

    ``--yes-always`` is always passed: aider has no other non-interactive
    mode, so dangerous_mode adds nothing. Auto-commits are disabled so the
    caller stays in control of the working tree.
    """

    name = "aider"
    binary_name = "aider"

    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        cmd = [executable, "--yes-always", "--message", prompt, "--no-auto-commits"]

        model = self.resolve_model(options)
        if model:
            cmd.extend(["--model", model])
        if options.session:
            cmd.append("--restore-chat-history")

        return cmd, None

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(dangerous_mode=True, tool_use=True)

    def error_patterns(self) -> dict[ErrorCategory, list[str]]:
        return {
            ErrorCategory.AUTH_EXPIRED: [r"api key.{0,40}(not set|missing)", r"authenticationerror"],
            ErrorCategory.RATE_LIMITED: [r"ratelimiterror"],
            ErrorCategory.QUOTA_EXCEEDED: [r"insufficient_quota"],
        }
