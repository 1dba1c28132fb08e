"""GitHub Copilot CLI provider (``copilot -p <prompt> --allow-all-tools``)."""

from __future__ import annotations

from baton.core.errors import ErrorCategory
from baton.providers.base import Provider, ProviderCapabilities, SendOptions


class GitHubCopilotProvider(Provider):
    """Run prompts via the GitHub Copilot CLI in non-interactive mode."""

    name = "github_copilot"
    binary_name = "copilot"

    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        # Non-interactive mode cannot answer tool approval prompts
        cmd = [executable, "-p", prompt, "--allow-all-tools"]

        if options.session:
            cmd.extend(["--resume", options.session])
        model = self.resolve_model(options)
        if model:
            cmd.extend(["--model", model])

        return cmd, None

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities(
            mcp=True,
            dangerous_mode=True,
            tool_use=True,
            sessions=True,
        )

    def error_patterns(self) -> dict[ErrorCategory, list[str]]:
        return {
            ErrorCategory.AUTH_EXPIRED: [r"gh auth login", r"no copilot access", r"not authorized"],
            ErrorCategory.QUOTA_EXCEEDED: [r"premium requests?.{0,20}(limit|exhausted)"],
        }
