"""Configuration models for baton.

Pydantic models for loading and validating YAML orchestrator
configuration. All models are re-exported from this ``__init__`` so callers
can use ``from baton.core.config import ...``.
"""

from baton.core.config.execution import (
    CircuitBreakerConfig,
    HealthConfig,
    RateLimitConfig,
    RetryConfig,
)
from baton.core.config.orchestrator import (
    CONFIG_ENV_VAR,
    LogConfig,
    OrchestratorConfig,
    config_search_paths,
    default_config,
    load_config,
)
from baton.core.config.providers import ProviderConfig

__all__ = [
    "CONFIG_ENV_VAR",
    "CircuitBreakerConfig",
    "HealthConfig",
    "LogConfig",
    "OrchestratorConfig",
    "ProviderConfig",
    "RateLimitConfig",
    "RetryConfig",
    "config_search_paths",
    "default_config",
    "load_config",
]
