"""Provider CLI adapters, the command executor and the provider registry."""

from baton.providers.aider import AiderProvider
from baton.providers.base import (
    Provider,
    ProviderCapabilities,
    Response,
    SendOptions,
    TokenUsage,
)
from baton.providers.claude import ClaudeProvider
from baton.providers.codex import CodexProvider
from baton.providers.cursor import CursorProvider
from baton.providers.executor import (
    CommandExecutor,
    CommandNotFoundError,
    CommandResult,
    CommandSpawnError,
    CommandTimeoutError,
)
from baton.providers.github_copilot import GitHubCopilotProvider
from baton.providers.registry import (
    ProviderFactory,
    ProviderRegistry,
    build_default_registry,
    default_registry,
)

__all__ = [
    "AiderProvider",
    "ClaudeProvider",
    "CodexProvider",
    "CommandExecutor",
    "CommandNotFoundError",
    "CommandResult",
    "CommandSpawnError",
    "CommandTimeoutError",
    "CursorProvider",
    "GitHubCopilotProvider",
    "Provider",
    "ProviderCapabilities",
    "ProviderFactory",
    "ProviderRegistry",
    "Response",
    "SendOptions",
    "TokenUsage",
    "build_default_registry",
    "default_registry",
]
