"""Provider registry: canonical names, aliases and factories.

New adapters register here without touching orchestration code::

    from baton.providers import default_registry

    default_registry.register("gemini", GeminiProvider, aliases=("google",))
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from baton.core.config import ProviderConfig
from baton.core.errors import ConfigurationError
from baton.providers.aider import AiderProvider
from baton.providers.base import Provider
from baton.providers.claude import ClaudeProvider
from baton.providers.codex import CodexProvider
from baton.providers.cursor import CursorProvider
from baton.providers.executor import CommandExecutor
from baton.providers.github_copilot import GitHubCopilotProvider

ProviderFactory = Callable[..., Provider]


class ProviderRegistry:
    """Maps provider names and aliases to provider factories.

    A factory is any callable accepting ``config=`` and ``executor=``
    keyword arguments and returning a Provider; Provider subclasses qualify.
    """

    def __init__(self) -> None:
        self._factories: dict[str, ProviderFactory] = {}
        self._aliases: dict[str, str] = {}
        self._lock = threading.Lock()

    def register(
        self,
        name: str,
        factory: ProviderFactory,
        aliases: Iterable[str] = (),
        replace: bool = False,
    ) -> None:
        """Register a provider factory under a canonical name.

        Raises:
            ValueError: If the name or an alias is taken and replace is False.
        """
        key = name.lower()
        alias_keys = [a.lower() for a in aliases]
        with self._lock:
            if not replace:
                if key in self._factories or key in self._aliases:
                    raise ValueError(f"provider '{name}' is already registered")
                for alias in alias_keys:
                    if alias in self._factories or alias in self._aliases:
                        raise ValueError(f"alias '{alias}' is already registered")
            self._factories[key] = factory
            self._aliases.pop(key, None)
            for alias in alias_keys:
                self._aliases[alias] = key

    def canonical_name(self, name: str) -> str | None:
        """Canonical name for a name or alias, or None if unknown."""
        key = name.lower()
        if key in self._factories:
            return key
        return self._aliases.get(key)

    def is_registered(self, name: str) -> bool:
        return self.canonical_name(name) is not None

    def resolve(self, name: str) -> ProviderFactory:
        """Factory for a name or alias.

        Raises:
            ConfigurationError: If the name is not registered.
        """
        canonical = self.canonical_name(name)
        if canonical is None:
            known = ", ".join(self.names())
            raise ConfigurationError(f"unknown provider '{name}' (known: {known})")
        return self._factories[canonical]

    def create(
        self,
        name: str,
        config: ProviderConfig | None = None,
        executor: CommandExecutor | None = None,
    ) -> Provider:
        """Instantiate the provider registered under a name or alias."""
        return self.resolve(name)(config=config, executor=executor)

    def names(self) -> list[str]:
        """Registered canonical names, sorted."""
        return sorted(self._factories)

    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)


def build_default_registry() -> ProviderRegistry:
    """Registry holding every built-in adapter."""
    registry = ProviderRegistry()
    registry.register("claude", ClaudeProvider, aliases=("anthropic",))
    registry.register("cursor", CursorProvider)
    registry.register("codex", CodexProvider)
    registry.register("github_copilot", GitHubCopilotProvider, aliases=("copilot",))
    registry.register("aider", AiderProvider)
    return registry


default_registry = build_default_registry()
