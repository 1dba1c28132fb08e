"""ErrorClassifier implementation for pattern-based error classification.

Maps a provider failure message to one ErrorCategory. Provider-specific
patterns are consulted first, in ErrorCategory declaration order; generic
fallback patterns apply only when no provider pattern matches.

Classification is pure: the same message and patterns always give the same
category, and nothing is mutated.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta

from .codes import ErrorCategory

ErrorPattern = str | re.Pattern[str]
ProviderPatterns = Mapping[ErrorCategory, Sequence[ErrorPattern]]


# =============================================================================
# Generic fallback patterns, checked in the order listed here.
# =============================================================================

_GENERIC_PATTERNS: list[tuple[ErrorCategory, list[str]]] = [
    (ErrorCategory.RATE_LIMITED, [
        r"rate.?limit",
        r"too many requests",
        r"\b429\b",
        r"resource.?exhausted",
        r"usage.?limit",
        r"hit.{0,10}limit",       # "You've hit your limit"
        r"limit.{0,10}resets?",   # "limit · resets 9pm"
    ]),
    (ErrorCategory.QUOTA_EXCEEDED, [
        r"quota",
        r"billing",
        r"credits?\b",
        r"insufficient.?funds",
        r"payment.?required",
    ]),
    (ErrorCategory.AUTH_EXPIRED, [
        r"auth",
        r"unauthori[sz]ed",
        r"invalid.?api.?key",
        r"\b401\b",
        r"\b403\b",
        r"expired.?token",
        r"token.?(has\s+)?expired",
        r"not.?logged.?in",
        r"login.?required",
    ]),
    (ErrorCategory.TIMEOUT, [
        r"time.?out",
        r"timed.?out",
        r"deadline.?exceeded",
    ]),
    (ErrorCategory.TRANSIENT, [
        r"\b5\d\d\b",
        r"temporar",
        r"unavailable",
        r"connection.?reset",
        r"connection.?refused",
        r"overloaded",
        r"try again later",
        r"ECONNRESET",
    ]),
    (ErrorCategory.PERMANENT, [
        r"invalid",
        r"malformed",
        r"\b400\b",
        r"bad request",
    ]),
]

_SECRET_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"sk-[A-Za-z0-9_\-]{8,}"),
    re.compile(r"(?i)bearer\s+[A-Za-z0-9._\-]+"),
    re.compile(r"(?i)(api[_-]?key|token|secret|password)(\s*[=:]\s*)(\S+)"),
]

# "resets 4am", "reset at 4:30pm"
_RESET_CLOCK_12H = re.compile(r"resets?(?:\s+at)?\s+(\d{1,2})(?::(\d{2}))?\s*([ap]m)", re.IGNORECASE)
# "resets at 21:00"
_RESET_CLOCK_24H = re.compile(r"resets?(?:\s+at)?\s+(\d{1,2}):(\d{2})\b", re.IGNORECASE)
# "resets in 3 hours", "try again in 30 minutes", "retry after 45 seconds"
_RESET_RELATIVE = re.compile(
    r"(?:resets?|try again|retry)\s+(?:in|after)\s+(\d{1,6})\s*"
    r"(hours?|hrs?|minutes?|mins?|seconds?|secs?|s)?\b",
    re.IGNORECASE,
)


def _compile(pattern: ErrorPattern) -> re.Pattern[str]:
    if isinstance(pattern, re.Pattern):
        return pattern
    return re.compile(pattern, re.IGNORECASE)


def _compile_patterns(strings: list[str]) -> re.Pattern[str]:
    """Merge regex strings into one case-insensitive alternation."""
    return re.compile("|".join(f"(?:{p})" for p in strings), re.IGNORECASE)


class ErrorClassifier:
    """Classifies provider failure messages into ErrorCategory values.

    The generic fallback table is compiled once per classifier; provider
    patterns are compiled on use (strings) or used as given (regexes).
    """

    def __init__(self) -> None:
        self._generic: list[tuple[ErrorCategory, re.Pattern[str]]] = [
            (category, _compile_patterns(patterns))
            for category, patterns in _GENERIC_PATTERNS
        ]

    def classify(
        self,
        error_message: str,
        provider_patterns: ProviderPatterns | None = None,
    ) -> ErrorCategory:
        """Classify an error message.

        Args:
            error_message: Failure text (stderr, stdout or exception message).
            provider_patterns: Category -> patterns declared by the provider.

        Returns:
            The first matching category, or ErrorCategory.UNKNOWN.
        """
        if not error_message:
            return ErrorCategory.UNKNOWN

        if provider_patterns:
            for category in ErrorCategory:
                for pattern in provider_patterns.get(category, ()):
                    if _compile(pattern).search(error_message):
                        return category

        for category, combined in self._generic:
            if combined.search(error_message):
                return category

        return ErrorCategory.UNKNOWN

    def parse_reset_time(self, message: str, now: datetime) -> datetime | None:
        """Extract a rate-limit reset time from a message.

        Supports:
        - "resets at 9pm" / "resets 4:30am" -> next such wall-clock time
        - "resets at 21:00" -> next such wall-clock time
        - "resets in 3 hours", "retry after 30 seconds" -> now + delta

        Wall-clock times are interpreted in ``now``'s timezone and roll over
        to the next day when already past.

        Returns:
            The reset time, or None when the message names none.
        """
        match = _RESET_CLOCK_12H.search(message)
        if match:
            hour = int(match.group(1)) % 12
            minute = int(match.group(2) or 0)
            if match.group(3).lower() == "pm":
                hour += 12
            return _next_wall_clock(now, hour, minute)

        match = _RESET_CLOCK_24H.search(message)
        if match:
            hour, minute = int(match.group(1)), int(match.group(2))
            if hour < 24 and minute < 60:
                return _next_wall_clock(now, hour, minute)

        match = _RESET_RELATIVE.search(message)
        if match:
            amount = int(match.group(1))
            unit = (match.group(2) or "s").lower()
            if unit.startswith("h"):
                return now + timedelta(hours=amount)
            if unit.startswith("m"):
                return now + timedelta(minutes=amount)
            return now + timedelta(seconds=amount)

        return None


def _next_wall_clock(now: datetime, hour: int, minute: int) -> datetime:
    reset = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if reset <= now:
        reset += timedelta(days=1)
    return reset


def redact_secrets(message: str) -> str:
    """Replace API keys, bearer tokens and key=value secrets with [REDACTED]."""
    redacted = _SECRET_PATTERNS[0].sub("[REDACTED]", message)
    redacted = _SECRET_PATTERNS[1].sub("Bearer [REDACTED]", redacted)
    return _SECRET_PATTERNS[2].sub(r"\1\2[REDACTED]", redacted)


_default_classifier = ErrorClassifier()


def classify(
    error_message: str,
    provider_patterns: ProviderPatterns | None = None,
) -> ErrorCategory:
    """Classify with the shared module-level ErrorClassifier."""
    return _default_classifier.classify(error_message, provider_patterns)


def parse_reset_time(message: str, now: datetime) -> datetime | None:
    """Parse a reset time with the shared module-level ErrorClassifier."""
    return _default_classifier.parse_reset_time(message, now)


__all__ = [
    "ErrorClassifier",
    "ErrorPattern",
    "ProviderPatterns",
    "classify",
    "parse_reset_time",
    "redact_secrets",
]
