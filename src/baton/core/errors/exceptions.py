"""Exception hierarchy raised across the orchestration layer.

Providers raise classified ProviderError subclasses; the Conductor raises
NoProvidersAvailableError once every option is exhausted. Configuration
problems surface as ConfigurationError at load time.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .codes import ErrorCategory


@dataclass(frozen=True)
class AttemptRecord:
    """One failed attempt inside a Conductor request."""

    provider: str
    attempt: int
    category: ErrorCategory
    message: str
    model: str | None = None
    occurred_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def describe(self) -> str:
        target = f"{self.provider}/{self.model}" if self.model else self.provider
        return f"attempt {self.attempt} on {target}: [{self.category.value}] {self.message}"


class BatonError(Exception):
    """Base exception for every error raised by baton."""


class ConfigurationError(BatonError):
    """Raised when configuration is missing, malformed or inconsistent."""


class ProviderError(BatonError):
    """Base exception for a failed provider invocation.

    Attributes:
        provider: Provider that failed.
        category: Classified failure category.
        attempts: Attempt history, attached when the Conductor escalates.
    """

    default_category = ErrorCategory.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.category = category or self.default_category
        self.attempts: list[AttemptRecord] = []


class ProviderTimeoutError(ProviderError):
    """Raised when a provider exceeds its allotted execution time.

    Attributes:
        timeout: Configured timeout in seconds.
    """

    default_category = ErrorCategory.TIMEOUT

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        timeout: float | None = None,
    ) -> None:
        super().__init__(message, provider=provider, category=ErrorCategory.TIMEOUT)
        self.timeout = timeout


class RateLimitError(ProviderError):
    """Raised when a provider reports rate limiting.

    Attributes:
        reset_time: When the provider says the limit lifts, if it said.
    """

    default_category = ErrorCategory.RATE_LIMITED

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        reset_time: datetime | None = None,
    ) -> None:
        super().__init__(message, provider=provider, category=ErrorCategory.RATE_LIMITED)
        self.reset_time = reset_time


class AuthenticationError(ProviderError):
    """Raised when a provider CLI's credentials are missing or expired."""

    default_category = ErrorCategory.AUTH_EXPIRED


class CircuitOpenError(ProviderError):
    """Raised when a provider's circuit breaker is rejecting calls."""

    def __init__(self, provider: str, *, retry_after: float | None = None) -> None:
        message = f"circuit breaker is open for provider '{provider}'"
        if retry_after is not None:
            message += f" (retry in {retry_after:.0f}s)"
        super().__init__(message, provider=provider, category=ErrorCategory.TRANSIENT)
        self.retry_after = retry_after


class ProviderUnavailableError(ProviderError):
    """Raised when a provider CLI cannot be started (binary missing)."""

    default_category = ErrorCategory.PERMANENT


class NoProvidersAvailableError(BatonError):
    """Raised when every provider option has been exhausted.

    The message enumerates every attempted provider with its last failure.

    Attributes:
        attempted_providers: Providers tried or ruled out, in order.
        errors: Last error message (or unavailability reason) per provider.
        attempts: Full attempt history.
        next_reset_time: Earliest rate-limit reset among limited providers.
    """

    def __init__(
        self,
        reason: str,
        *,
        attempts: list[AttemptRecord] | None = None,
        next_reset_time: datetime | None = None,
        unavailable: Mapping[str, str] | None = None,
    ) -> None:
        self.reason = reason
        self.attempts = list(attempts or [])
        self.next_reset_time = next_reset_time
        self.attempted_providers: list[str] = []
        self.errors: dict[str, str] = {}
        for name, why in (unavailable or {}).items():
            self.attempted_providers.append(name)
            self.errors[name] = why
        for record in self.attempts:
            if record.provider not in self.errors:
                self.attempted_providers.append(record.provider)
            self.errors[record.provider] = f"[{record.category.value}] {record.message}"
        super().__init__(self._format())

    def _format(self) -> str:
        lines = [f"No providers available: {self.reason}"]
        for name in self.attempted_providers:
            lines.append(f"  - {name}: {self.errors[name]}")
        if self.next_reset_time is not None:
            lines.append(f"  earliest rate-limit reset: {self.next_reset_time.isoformat()}")
        return "\n".join(lines)


def error_for_category(
    category: ErrorCategory,
    message: str,
    *,
    provider: str | None = None,
    reset_time: datetime | None = None,
    timeout: float | None = None,
) -> ProviderError:
    """Build the ProviderError subclass that matches a category."""
    if category is ErrorCategory.RATE_LIMITED:
        return RateLimitError(message, provider=provider, reset_time=reset_time)
    if category is ErrorCategory.AUTH_EXPIRED:
        return AuthenticationError(message, provider=provider)
    if category is ErrorCategory.TIMEOUT:
        return ProviderTimeoutError(message, provider=provider, timeout=timeout)
    return ProviderError(message, provider=provider, category=category)


__all__ = [
    "AttemptRecord",
    "AuthenticationError",
    "BatonError",
    "CircuitOpenError",
    "ConfigurationError",
    "NoProvidersAvailableError",
    "ProviderError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "RateLimitError",
    "error_for_category",
]
