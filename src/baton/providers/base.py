"""Abstract base for provider CLI adapters.

A Provider turns a prompt into a command line, runs it through the
CommandExecutor and turns the result into a Response. Every failure leaves
a Provider as a classified ProviderError; raw OS exceptions and error-valued
Responses never escape.

Providers are stateless with respect to orchestration: circuit breakers,
rate limits and health live in the ProviderManager.

Example - adding a provider:

    class GeminiProvider(Provider):
        name = "gemini"
        binary_name = "gemini"

        def build_command(self, prompt, options, executable):
            return [executable, "--prompt", prompt], None

    default_registry.register("gemini", GeminiProvider)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import ClassVar

from baton.core.clock import Clock, SystemClock
from baton.core.config import ProviderConfig
from baton.core.constants import TRUNCATE_ERROR_MESSAGE_CHARS
from baton.core.errors import (
    ErrorCategory,
    ErrorClassifier,
    ErrorPattern,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    error_for_category,
    redact_secrets,
)
from baton.core.logging import get_logger
from baton.providers.executor import (
    CommandExecutor,
    CommandResult,
    CommandSpawnError,
    CommandTimeoutError,
)


@dataclass(frozen=True)
class TokenUsage:
    """Token counts reported by a provider CLI."""

    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float | None = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass(frozen=True)
class Response:
    """Result of a successful provider invocation."""

    text: str
    """Response text extracted from the CLI output."""

    exit_code: int
    """Process exit code (0 for a Response)."""

    duration_seconds: float
    """Wall-clock duration of the invocation."""

    provider: str
    """Canonical name of the provider that answered."""

    model: str | None = None
    """Model requested or reported, if known."""

    usage: TokenUsage | None = None
    """Token usage, when the CLI reports it."""

    session_id: str | None = None
    """Session the CLI reports, for resuming."""

    error: str | None = None
    """Non-fatal diagnostic text from the CLI, if any."""


@dataclass(frozen=True)
class SendOptions:
    """Per-request options accepted by Provider.send_message."""

    model: str | None = None
    timeout: float | None = None
    dangerous_mode: bool = False
    session: str | None = None


@dataclass(frozen=True)
class ProviderCapabilities:
    """Static feature flags of a provider CLI."""

    streaming: bool = False
    mcp: bool = False
    dangerous_mode: bool = False
    vision: bool = False
    tool_use: bool = False
    sessions: bool = False


class Provider(ABC):
    """Abstract base class for provider CLI adapters.

    Subclasses set ``name`` and ``binary_name`` and implement
    ``build_command``. They may override ``command`` (where configured
    default flags land), ``parse_output``, ``capabilities`` and
    ``error_patterns``.
    """

    name: ClassVar[str]
    binary_name: ClassVar[str]

    def __init__(
        self,
        config: ProviderConfig | None = None,
        executor: CommandExecutor | None = None,
        classifier: ErrorClassifier | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.config = config or ProviderConfig()
        self.executor = executor or CommandExecutor()
        self.classifier = classifier or ErrorClassifier()
        self.clock = clock or SystemClock()
        self._executable: str | None = None
        self._logger = get_logger(f"provider.{self.name}")

    @classmethod
    def provider_name(cls) -> str:
        return cls.name

    @property
    def binary(self) -> str:
        """Executable name or path, honoring the config override."""
        return self.config.binary or self.binary_name

    def available(self) -> bool:
        """Whether the CLI binary is installed. Positive lookups are cached."""
        if self._executable is None:
            self._executable = self.executor.which(self.binary)
        return self._executable is not None

    def capabilities(self) -> ProviderCapabilities:
        return ProviderCapabilities()

    def error_patterns(self) -> Mapping[ErrorCategory, Sequence[ErrorPattern]]:
        """Provider-specific classification patterns, checked before generic ones."""
        return {}

    def resolve_model(self, options: SendOptions) -> str | None:
        return options.model or self.config.default_model

    @abstractmethod
    def build_command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        """Build the argument vector and optional stdin text.

        Returns a list of arguments for subprocess - NOT a shell string.
        """
        ...

    def command(
        self,
        prompt: str,
        options: SendOptions,
        executable: str,
    ) -> tuple[list[str], str | None]:
        """Full argv and stdin: ``build_command`` plus the configured default flags."""
        argv, stdin = self.build_command(prompt, options, executable)
        return [*argv, *self.config.default_flags], stdin

    def parse_output(self, result: CommandResult, model: str | None) -> Response:
        """Turn a zero-exit CommandResult into a Response."""
        return Response(
            text=result.stdout.strip(),
            exit_code=result.exit_code,
            duration_seconds=result.duration_seconds,
            provider=self.name,
            model=model,
        )

    async def send_message(self, prompt: str, options: SendOptions | None = None) -> Response:
        """Send a prompt to the CLI and return its Response.

        Raises:
            ProviderUnavailableError: The CLI is not installed or cannot be started.
            ProviderTimeoutError: The CLI exceeded its timeout.
            ProviderError: The CLI failed; ``category`` says how.
        """
        options = options or SendOptions()
        if not self.available() or self._executable is None:
            raise ProviderUnavailableError(
                f"{self.binary} not found on PATH", provider=self.name
            )

        model = self.resolve_model(options)
        argv, stdin = self.command(prompt, options, self._executable)
        timeout = options.timeout or self.config.timeout_seconds

        self._logger.debug(
            "provider.sending",
            model=model,
            prompt_length=len(prompt),
            timeout_seconds=timeout,
            dangerous_mode=options.dangerous_mode,
        )

        try:
            result = await self.executor.execute(
                argv, timeout=timeout, env=self.config.env or None, stdin=stdin
            )
        except CommandTimeoutError as e:
            raise ProviderTimeoutError(str(e), provider=self.name, timeout=timeout) from e
        except CommandSpawnError as e:
            self._executable = None
            raise ProviderUnavailableError(str(e), provider=self.name) from e

        if result.exit_code != 0:
            detail = result.stderr.strip() or result.stdout.strip()
            raise self.failure(
                detail or f"{self.binary} exited with code {result.exit_code}",
                classify_text=f"{result.stderr}\n{result.stdout}",
            )

        response = self.parse_output(result, model)
        self._logger.debug(
            "provider.responded",
            model=response.model,
            duration_seconds=round(response.duration_seconds, 3),
            response_length=len(response.text),
        )
        return response

    def failure(self, message: str, classify_text: str | None = None) -> ProviderError:
        """Build a classified ProviderError for a failed invocation."""
        text = classify_text if classify_text is not None else message
        category = self.classifier.classify(text, self.error_patterns())
        reset_time = None
        if category is ErrorCategory.RATE_LIMITED:
            reset_time = self.classifier.parse_reset_time(text, self.clock.now())
        clean = redact_secrets(message.strip())[:TRUNCATE_ERROR_MESSAGE_CHARS]
        return error_for_category(category, clean, provider=self.name, reset_time=reset_time)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} binary={self.binary!r}>"
