"""Error taxonomy, exception hierarchy and classifier.

Usage:
    from baton.core.errors import ErrorCategory, classify, ProviderError

    category = classify("HTTP 429 Too Many Requests")
    assert category is ErrorCategory.RATE_LIMITED
"""

from .classifier import (
    ErrorClassifier,
    ErrorPattern,
    ProviderPatterns,
    classify,
    parse_reset_time,
    redact_secrets,
)
from .codes import CategoryBehavior, ErrorCategory, RecommendedAction
from .exceptions import (
    AttemptRecord,
    AuthenticationError,
    BatonError,
    CircuitOpenError,
    ConfigurationError,
    NoProvidersAvailableError,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
    error_for_category,
)

__all__ = [
    # Codes
    "CategoryBehavior",
    "ErrorCategory",
    "RecommendedAction",
    # Exceptions
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
    # Classifier
    "ErrorClassifier",
    "ErrorPattern",
    "ProviderPatterns",
    "classify",
    "parse_reset_time",
    "redact_secrets",
]
