"""Global constants for baton.

Centralizes default values used throughout the codebase, making them
discoverable, consistent, and easy to modify.
"""

# =============================================================================
# Process Execution Defaults
# =============================================================================

PROVIDER_DEFAULT_TIMEOUT_SECONDS = 300.0
"""Default timeout for one provider CLI invocation (5 minutes)."""

GRACEFUL_TERMINATION_SECONDS = 5.0
"""Seconds between SIGTERM and SIGKILL when a process must be stopped."""

# =============================================================================
# Circuit Breaker Defaults
# =============================================================================

CIRCUIT_FAILURE_THRESHOLD = 5
"""Consecutive failures before a provider's circuit opens."""

CIRCUIT_RECOVERY_TIMEOUT_SECONDS = 300.0
"""Seconds an open circuit waits before a half-open trial call."""

CIRCUIT_HALF_OPEN_SUCCESS_THRESHOLD = 2
"""Consecutive half-open successes required to close the circuit."""

# =============================================================================
# Rate Limit Defaults
# =============================================================================

RATE_LIMIT_DEFAULT_RESET_SECONDS = 3600.0
"""Assumed rate-limit window when the provider does not report a reset time."""

RATE_LIMIT_MAX_RESET_SECONDS = 24 * 3600.0
"""Parsed reset times further out than this are clamped."""

# =============================================================================
# Health Defaults
# =============================================================================

HEALTH_WINDOW_SIZE = 10
"""Span of the health estimates; also the number of outcomes kept for counts."""

HEALTH_UNHEALTHY_THRESHOLD = 50.0
"""Providers scoring at or below this are considered unhealthy."""

HEALTH_MIN_SAMPLES = 3
"""Below this many outcomes a provider is always considered healthy."""

HEALTH_SLOW_RESPONSE_SECONDS = 300.0
"""Responses this slow (or slower) earn no response-time points."""

# =============================================================================
# Retry Defaults
# =============================================================================

RETRY_BASE_DELAY_SECONDS = 1.0
RETRY_MAX_DELAY_SECONDS = 60.0
RETRY_EXPONENTIAL_BASE = 2.0
MIN_MAX_ATTEMPTS = 2
"""Lower bound on the derived max_attempts (one per provider, at least two)."""

# =============================================================================
# Text Truncation Limits (characters)
# =============================================================================

TRUNCATE_ERROR_MESSAGE_CHARS = 500
"""Maximum characters of stderr/stdout carried in an error message."""
