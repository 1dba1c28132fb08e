"""Top-level orchestrator configuration and loading.

OrchestratorConfig is built once at startup and passed by reference to the
ProviderManager and Conductor. Cross-references between provider names
(default, fallbacks, registry) are checked by the ProviderManager, which
knows about aliases.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from baton.core.config.execution import (
    CircuitBreakerConfig,
    HealthConfig,
    RateLimitConfig,
    RetryConfig,
)
from baton.core.config.providers import ProviderConfig
from baton.core.errors import ConfigurationError
from baton.core.logging import get_logger

_logger = get_logger("config")

CONFIG_ENV_VAR = "BATON_CONFIG"
CONFIG_FILE_NAME = "baton.yaml"


class LogConfig(BaseModel):
    """Logging settings; CLI options take precedence."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="WARNING",
        description="Minimum log level",
    )
    format: Literal["json", "console"] = Field(
        default="console",
        description="Console for humans, json for log shipping",
    )
    file_path: Path | None = Field(
        default=None,
        description="Rotating log file; logs go to stderr when unset",
    )


class OrchestratorConfig(BaseModel):
    """Complete configuration for provider orchestration.

    Example YAML:
        default_provider: cursor
        fallback_providers: [claude]
        providers:
          cursor: {priority: 1, models: [auto]}
          claude: {priority: 2}
        circuit_breaker: {failure_threshold: 5}
    """

    default_provider: str = Field(description="Provider tried first when none is requested")
    fallback_providers: list[str] = Field(
        default_factory=list,
        description="Explicit fallback order, tried before priority order",
    )
    max_attempts: int | None = Field(
        default=None,
        ge=1,
        description="Attempts per request (default: max(enabled providers, 2))",
    )
    providers: dict[str, ProviderConfig] = Field(
        default_factory=dict,
        description="Provider name -> settings",
    )
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @model_validator(mode="after")
    def _require_providers(self) -> OrchestratorConfig:
        if not self.providers:
            raise ValueError("at least one provider must be configured")
        if not any(p.enabled for p in self.providers.values()):
            raise ValueError("at least one provider must be enabled")
        return self

    @property
    def enabled_providers(self) -> list[str]:
        return [name for name, cfg in self.providers.items() if cfg.enabled]

    def circuit_breaker_for(self, provider: str) -> CircuitBreakerConfig:
        """Effective breaker settings for a provider."""
        override = self.providers[provider].circuit_breaker
        return override if override is not None else self.circuit_breaker

    def rate_limit_for(self, provider: str) -> RateLimitConfig:
        """Effective rate-limit settings for a provider."""
        override = self.providers[provider].rate_limit
        return override if override is not None else self.rate_limit

    @classmethod
    def from_dict(cls, data: Any) -> OrchestratorConfig:
        """Validate a parsed mapping, raising ConfigurationError on failure."""
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"configuration must be a mapping, got {type(data).__name__}"
            )
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(f"invalid configuration: {e}") from e

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> OrchestratorConfig:
        """Load configuration from a YAML string."""
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_yaml(cls, path: Path) -> OrchestratorConfig:
        """Load configuration from a YAML file."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"cannot read config file {path}: {e}") from e
        return cls.from_yaml_string(text)


def default_config() -> OrchestratorConfig:
    """Built-in configuration used when no config file is found."""
    return OrchestratorConfig(
        default_provider="claude",
        fallback_providers=["cursor", "codex", "github_copilot", "aider"],
        providers={
            "claude": ProviderConfig(priority=1),
            "cursor": ProviderConfig(priority=2),
            "codex": ProviderConfig(priority=3, kind="usage_based"),
            "github_copilot": ProviderConfig(priority=4),
            "aider": ProviderConfig(priority=5, kind="usage_based"),
        },
    )


def config_search_paths() -> list[Path]:
    """Candidate config files in lookup order."""
    paths: list[Path] = []
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        paths.append(Path(env_path).expanduser())
    paths.append(Path.cwd() / CONFIG_FILE_NAME)
    paths.append(Path.home() / ".config" / "baton" / CONFIG_FILE_NAME)
    return paths


def load_config(path: Path | None = None) -> OrchestratorConfig:
    """Load configuration from an explicit path or the first file found.

    Args:
        path: Explicit config file. Must exist when given.

    Returns:
        The loaded configuration, or default_config() when no file exists.

    Raises:
        ConfigurationError: If the file cannot be read or is invalid.
    """
    if path is not None:
        _logger.debug("config.loading", path=str(path))
        return OrchestratorConfig.from_yaml(path)

    for candidate in config_search_paths():
        if candidate.is_file():
            _logger.debug("config.loading", path=str(candidate))
            return OrchestratorConfig.from_yaml(candidate)

    _logger.debug("config.using_defaults")
    return default_config()
