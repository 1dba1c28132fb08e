"""Error categories and the action each one recommends.

Error Category Taxonomy
=======================

Every provider failure is mapped to exactly one category. The category
decides what the Conductor does next.

    | Category       | Action             | Retryable |
    |----------------|--------------------|-----------|
    | rate_limited   | switch_provider    | No        |
    | auth_expired   | switch_provider    | No        |
    | quota_exceeded | switch_provider    | No        |
    | timeout        | retry_with_backoff | Yes       |
    | transient      | retry_with_backoff | Yes       |
    | permanent      | escalate           | No        |
    | unknown        | escalate           | No        |

"Retryable" means retrying on the *same* provider can help. Unknown errors
are escalated rather than retried: repeating a malformed request wastes
attempts and provider quota.

Example::

    category = classify(message, provider.error_patterns())
    if category.action is RecommendedAction.SWITCH_PROVIDER:
        manager.switch_provider(reason=category.value)
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple


class RecommendedAction(str, Enum):
    """What the orchestration loop should do with a classified failure."""

    SWITCH_PROVIDER = "switch_provider"
    """Move the request to another provider."""

    RETRY_WITH_BACKOFF = "retry_with_backoff"
    """Wait, then retry on the same provider."""

    ESCALATE = "escalate"
    """Stop and surface the error to the caller."""


class CategoryBehavior(NamedTuple):
    """Action and retryability for one ErrorCategory."""

    action: RecommendedAction
    retryable: bool


class ErrorCategory(str, Enum):
    """Closed set of failure categories.

    Declaration order matters: provider-specific patterns are checked in
    this order, so the first matching category wins.
    """

    RATE_LIMITED = "rate_limited"
    AUTH_EXPIRED = "auth_expired"
    QUOTA_EXCEEDED = "quota_exceeded"
    TIMEOUT = "timeout"
    TRANSIENT = "transient"
    PERMANENT = "permanent"
    UNKNOWN = "unknown"

    @property
    def behavior(self) -> CategoryBehavior:
        return _CATEGORY_BEHAVIOR[self]

    @property
    def action(self) -> RecommendedAction:
        """Recommended next step for this category."""
        return _CATEGORY_BEHAVIOR[self].action

    @property
    def retryable(self) -> bool:
        """Whether retrying the same provider can help."""
        return _CATEGORY_BEHAVIOR[self].retryable


_CATEGORY_BEHAVIOR: dict[ErrorCategory, CategoryBehavior] = {
    ErrorCategory.RATE_LIMITED: CategoryBehavior(RecommendedAction.SWITCH_PROVIDER, False),
    ErrorCategory.AUTH_EXPIRED: CategoryBehavior(RecommendedAction.SWITCH_PROVIDER, False),
    ErrorCategory.QUOTA_EXCEEDED: CategoryBehavior(RecommendedAction.SWITCH_PROVIDER, False),
    ErrorCategory.TIMEOUT: CategoryBehavior(RecommendedAction.RETRY_WITH_BACKOFF, True),
    ErrorCategory.TRANSIENT: CategoryBehavior(RecommendedAction.RETRY_WITH_BACKOFF, True),
    ErrorCategory.PERMANENT: CategoryBehavior(RecommendedAction.ESCALATE, False),
    ErrorCategory.UNKNOWN: CategoryBehavior(RecommendedAction.ESCALATE, False),
}


__all__ = ["CategoryBehavior", "ErrorCategory", "RecommendedAction"]
