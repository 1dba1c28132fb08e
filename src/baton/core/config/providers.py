"""Per-provider configuration model."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from baton.core.config.execution import CircuitBreakerConfig, RateLimitConfig
from baton.core.constants import PROVIDER_DEFAULT_TIMEOUT_SECONDS


class ProviderConfig(BaseModel):
    """Configuration for one provider CLI.

    Example YAML:
        providers:
          cursor:
            priority: 1
            models: [auto]
            timeout_seconds: 600
          claude:
            priority: 2
            kind: subscription
            default_flags: ["--verbose"]
            env:
              CLAUDE_CONFIG_DIR: ~/.claude-work
    """

    enabled: bool = Field(default=True, description="Disabled providers are never selected")
    kind: Literal["subscription", "usage_based"] = Field(
        default="subscription",
        description="Billing model of the provider account",
    )
    priority: int = Field(
        default=100,
        description="Fallback order after the explicit list (lower = preferred)",
    )
    models: list[str] = Field(
        default_factory=list,
        description="Ordered models; the first is used when none is requested",
    )
    default_flags: list[str] = Field(
        default_factory=list,
        description="Extra CLI arguments appended to every invocation",
    )
    timeout_seconds: float = Field(
        default=PROVIDER_DEFAULT_TIMEOUT_SECONDS,
        gt=0,
        description="Wall-clock limit for one invocation",
    )
    binary: str | None = Field(
        default=None,
        description="Executable name or path, overriding the adapter default",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the provider process",
    )
    circuit_breaker: CircuitBreakerConfig | None = Field(
        default=None,
        description="Overrides the global circuit breaker settings",
    )
    rate_limit: RateLimitConfig | None = Field(
        default=None,
        description="Overrides the global rate limit settings",
    )

    @property
    def default_model(self) -> str | None:
        return self.models[0] if self.models else None
