"""Pytest fixtures for baton tests."""

import logging
from collections.abc import Generator

import pytest
import structlog

from baton.core.logging import clear_context
from tests.helpers import FakeClock, FakeExecutor, RecordingSleep


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset logging state before and after each test.

    CLI runs configure logging against captured streams that are closed
    afterwards, so every test starts from structlog defaults and an empty
    root logger.
    """
    import baton.cli.helpers as cli_helpers

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()
    clear_context()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    cli_helpers.reset_logging_state()
    structlog.reset_defaults()
    clear_context()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def executor() -> FakeExecutor:
    """Executor where every provider binary is installed and answers "done"."""
    return FakeExecutor()


@pytest.fixture
def sample_config_yaml() -> str:
    return """\
default_provider: cursor
fallback_providers: [claude]
max_attempts: 4
providers:
  cursor:
    priority: 1
    models: [auto]
  claude:
    priority: 2
    timeout_seconds: 600
    default_flags: ["--verbose"]
  codex:
    priority: 3
    kind: usage_based
    enabled: false
circuit_breaker:
  failure_threshold: 3
  recovery_timeout_seconds: 120
retry:
  base_delay_seconds: 2
logging:
  level: INFO
"""
