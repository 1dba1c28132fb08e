"""Tests for baton.providers.registry module."""

import pytest

from baton.core.config import ProviderConfig
from baton.core.errors import ConfigurationError
from baton.providers import ClaudeProvider, CursorProvider, GitHubCopilotProvider
from baton.providers.registry import ProviderRegistry, build_default_registry, default_registry
from tests.helpers import FakeExecutor


class TestDefaultRegistry:
    def test_builtin_names(self):
        assert default_registry.names() == ["aider", "claude", "codex", "cursor", "github_copilot"]

    @pytest.mark.parametrize(
        "name,canonical",
        [
            ("claude", "claude"),
            ("anthropic", "claude"),
            ("Claude", "claude"),
            ("copilot", "github_copilot"),
            ("github_copilot", "github_copilot"),
        ],
    )
    def test_aliases(self, name, canonical):
        assert default_registry.canonical_name(name) == canonical

    def test_unknown(self):
        assert default_registry.canonical_name("gemini") is None
        assert not default_registry.is_registered("gemini")
        with pytest.raises(ConfigurationError, match="unknown provider 'gemini'"):
            default_registry.resolve("gemini")

    def test_create_via_alias(self):
        executor = FakeExecutor()
        config = ProviderConfig(priority=3)
        provider = default_registry.create("copilot", config=config, executor=executor)

        assert isinstance(provider, GitHubCopilotProvider)
        assert provider.config is config
        assert provider.executor is executor


class TestRegister:
    def test_register_new_provider(self):
        registry = ProviderRegistry()
        registry.register("gemini", CursorProvider, aliases=("google",))

        assert registry.names() == ["gemini"]
        assert registry.aliases() == {"google": "gemini"}
        assert registry.resolve("google") is CursorProvider

    def test_duplicate_name(self):
        registry = build_default_registry()
        with pytest.raises(ValueError, match="already registered"):
            registry.register("claude", CursorProvider)

    def test_duplicate_alias(self):
        registry = build_default_registry()
        with pytest.raises(ValueError, match="alias 'anthropic'"):
            registry.register("other", CursorProvider, aliases=("anthropic",))

    def test_name_taken_by_alias(self):
        registry = build_default_registry()
        with pytest.raises(ValueError):
            registry.register("copilot", CursorProvider)

    def test_replace(self):
        registry = build_default_registry()
        registry.register("claude", CursorProvider, replace=True)
        assert registry.resolve("claude") is CursorProvider

    def test_registries_are_independent(self):
        registry = build_default_registry()
        registry.register("gemini", ClaudeProvider)
        assert not default_registry.is_registered("gemini")
