"""Structured logging infrastructure for baton.

Provides structured logging using structlog with baton-specific context such
as request_id, provider and component names. Supports console and JSON
output, optionally to a rotating log file.

Example usage:
    from baton.core.logging import get_logger, configure_logging, with_context

    # Configure once at startup
    configure_logging(level="DEBUG", format="console")

    # Get a component-specific logger
    logger = get_logger("conductor")

    # Log with key/value fields
    logger.info("attempt_started", provider="claude", attempt=1)

    # Correlate every line of one request
    ctx = RequestContext(request_id="abc-123")
    with with_context(ctx):
        logger.info("request_started")  # includes request_id automatically
"""

from __future__ import annotations

import logging
import sys
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

# Field names whose values are never written to a log
SENSITIVE_PATTERNS = frozenset({
    "api_key",
    "apikey",
    "api-key",
    "token",
    "secret",
    "password",
    "credential",
    "bearer",
    "authorization",
})

# Token counts are numbers, not secrets
_SENSITIVE_EXEMPT = frozenset({
    "input_tokens",
    "output_tokens",
    "total_tokens",
})

_current_log_path: Path | None = None


def get_current_log_path() -> Path | None:
    """Get the configured log file path, or None if file logging is off."""
    return _current_log_path


@dataclass(frozen=True)
class RequestContext:
    """Immutable context for correlating log entries of one request.

    Attributes:
        request_id: Unique id of one Conductor.send_message call.
        provider: Provider currently handling the request, if any.
        attempt: Current attempt number (1-indexed), if any.
        component: Component name for the current operation.
    """

    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    provider: str | None = None
    attempt: int | None = None
    component: str = "unknown"

    def with_attempt(self, provider: str, attempt: int) -> RequestContext:
        """Create a new context for a specific provider attempt."""
        return replace(self, provider=provider, attempt=attempt)

    def to_dict(self) -> dict[str, Any]:
        """Convert context to a dictionary for logging (None values dropped)."""
        result: dict[str, Any] = {
            "request_id": self.request_id,
            "component": self.component,
        }
        if self.provider is not None:
            result["provider"] = self.provider
        if self.attempt is not None:
            result["attempt"] = self.attempt
        return result


# ContextVar keeps concurrent asyncio tasks isolated from each other
_current_context: ContextVar[RequestContext | None] = ContextVar(
    "baton_context", default=None
)


def get_current_context() -> RequestContext | None:
    """Get the current RequestContext if set."""
    return _current_context.get()


def clear_context() -> None:
    """Clear the current RequestContext."""
    _current_context.set(None)


@contextmanager
def with_context(ctx: RequestContext) -> Iterator[RequestContext]:
    """Set the RequestContext for the duration of a block.

    Args:
        ctx: The RequestContext to use for the block.

    Yields:
        The RequestContext that was set.
    """
    token = _current_context.set(ctx)
    try:
        yield ctx
    finally:
        _current_context.reset(token)


def _sanitize_value(key: str, value: Any) -> Any:
    """Return "[REDACTED]" for values stored under sensitive-looking keys."""
    key_lower = key.lower()
    if key_lower in _SENSITIVE_EXEMPT:
        return value
    for pattern in SENSITIVE_PATTERNS:
        if pattern in key_lower:
            return "[REDACTED]"
    return value


def _sanitize_event_dict(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that redacts sensitive fields (one level deep)."""
    sanitized: EventDict = {}
    for key, value in event_dict.items():
        if isinstance(value, dict):
            sanitized[key] = {
                k: _sanitize_value(k, v) for k, v in value.items()
            }
        else:
            sanitized[key] = _sanitize_value(key, value)
    return sanitized


def _add_timestamp(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds an ISO8601 UTC timestamp."""
    event_dict["timestamp"] = datetime.now(UTC).isoformat()
    return event_dict


def _add_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Structlog processor that adds RequestContext fields to log entries.

    Explicitly bound fields take precedence over context fields.
    """
    ctx = get_current_context()
    if ctx is not None:
        for key, value in ctx.to_dict().items():
            if key not in event_dict:
                event_dict[key] = value
    return event_dict


class BatonLogger:
    """baton logger wrapper around structlog.

    The logger is bound to a component name and can carry extra bound
    context. The underlying structlog logger is fetched lazily on every call
    so loggers created at import time respect a later configure_logging().
    """

    def __init__(
        self,
        component: str,
        **initial_context: Any,
    ) -> None:
        self._component = component
        self._context: dict[str, Any] = {"component": component, **initial_context}

    def _get_logger(self) -> structlog.stdlib.BoundLogger:
        logger: structlog.stdlib.BoundLogger = structlog.get_logger().bind(**self._context)
        return logger

    def bind(self, **context: Any) -> BatonLogger:
        """Create a new logger with additional bound context."""
        new_logger = BatonLogger.__new__(BatonLogger)
        new_logger._component = self._component
        new_logger._context = {**self._context, **context}
        return new_logger

    def debug(self, event: str, **kw: Any) -> None:
        self._get_logger().debug(event, **kw)

    def info(self, event: str, **kw: Any) -> None:
        self._get_logger().info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._get_logger().warning(event, **kw)

    def error(self, event: str, **kw: Any) -> None:
        self._get_logger().error(event, **kw)

    def exception(self, event: str, **kw: Any) -> None:
        """Log an exception with traceback. Call from inside an except block."""
        self._get_logger().exception(event, **kw)


def _build_processors(
    renderer: Processor,
    include_timestamps: bool,
    include_context: bool,
) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        _sanitize_event_dict,
    ]

    if include_context:
        processors.append(_add_context)

    if include_timestamps:
        processors.append(_add_timestamp)

    processors.extend([
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ])
    return processors


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO",
    format: Literal["json", "console"] = "console",  # noqa: A002
    file_path: Path | None = None,
    max_file_size_mb: int = 50,
    backup_count: int = 5,
    include_timestamps: bool = True,
    include_context: bool = True,
) -> None:
    """Configure baton structured logging.

    Call once at application startup, before any logging occurs. Console
    output goes to stderr so that stdout stays reserved for responses.

    Args:
        level: Minimum log level to capture.
        format: "console" for human-readable or "json" for structured output.
        file_path: Optional log file. When given, output goes to a rotating
            file instead of stderr.
        max_file_size_mb: Maximum log file size before rotation (MB).
        backup_count: Number of rotated log files to keep.
        include_timestamps: Whether to include ISO8601 timestamps.
        include_context: Whether to include RequestContext fields.
    """
    global _current_log_path

    log_level = getattr(logging, level)

    handler: logging.Handler
    if file_path is not None:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        _current_log_path = file_path
        handler = RotatingFileHandler(
            file_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=backup_count,
            encoding="utf-8",
        )
    else:
        _current_log_path = None
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    renderer: Processor
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=file_path is None)

    # cache_logger_on_first_use=False so module-level loggers pick up changes
    structlog.configure(
        processors=_build_processors(renderer, include_timestamps, include_context),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(component: str, **initial_context: Any) -> BatonLogger:
    """Get a baton logger for a component.

    Args:
        component: The component name (e.g., "conductor", "provider.claude").
        **initial_context: Additional context to bind.
    """
    return BatonLogger(component, **initial_context)


__all__ = [
    "BatonLogger",
    "RequestContext",
    "SENSITIVE_PATTERNS",
    "clear_context",
    "configure_logging",
    "get_current_context",
    "get_current_log_path",
    "get_logger",
    "with_context",
]
