"""Shared test doubles for baton tests."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from baton.core.config import OrchestratorConfig, ProviderConfig
from baton.providers.base import Provider, Response, SendOptions
from baton.providers.executor import CommandExecutor, CommandResult

START = datetime(2026, 3, 2, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = START) -> None:
        self._now = start

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float) -> None:
        self._now += timedelta(seconds=seconds)


class RecordingSleep:
    """Async stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def ok(stdout: str = "done", duration: float = 0.5) -> CommandResult:
    return CommandResult(stdout=stdout, stderr="", exit_code=0, duration_seconds=duration)


def failed(stderr: str, exit_code: int = 1, stdout: str = "") -> CommandResult:
    return CommandResult(stdout=stdout, stderr=stderr, exit_code=exit_code, duration_seconds=0.1)


Outcome = CommandResult | BaseException


class FakeExecutor(CommandExecutor):
    """CommandExecutor that returns scripted results per binary.

    Each binary gets a queue of outcomes (CommandResult or exception). The
    last outcome repeats once the queue is drained. Binaries listed in
    ``missing`` are reported as not installed.
    """

    def __init__(
        self,
        script: Mapping[str, Sequence[Outcome]] | None = None,
        missing: Sequence[str] = (),
    ) -> None:
        super().__init__(grace_period_seconds=0.1)
        self._script = {name: list(outcomes) for name, outcomes in (script or {}).items()}
        self.missing = set(missing)
        self.calls: list[dict[str, Any]] = []

    def which(self, binary_name: str, path: str | None = None) -> str | None:  # type: ignore[override]
        if binary_name in self.missing:
            return None
        return f"/usr/local/bin/{binary_name}"

    async def execute(self, command, timeout, env=None, stdin=None, cwd=None) -> CommandResult:
        argv = list(command)
        binary = argv[0].rsplit("/", 1)[-1]
        self.calls.append({"binary": binary, "argv": argv, "stdin": stdin, "timeout": timeout, "env": env})
        queue = self._script.get(binary)
        if not queue:
            return ok()
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def calls_for(self, binary: str) -> list[dict[str, Any]]:
        return [c for c in self.calls if c["binary"] == binary]


class ScriptedProvider(Provider):
    """Provider that replays scripted outcomes without any subprocess.

    Outcomes are Response text (str) or exceptions; the last one repeats.
    """

    binary_name = "scripted"

    def __init__(self, name: str, outcomes: Sequence[str | BaseException] = ("ok",), installed: bool = True) -> None:
        self.name = name  # type: ignore[misc]
        super().__init__()
        self._outcomes = list(outcomes)
        self.installed = installed
        self.prompts: list[str] = []
        self.models: list[str | None] = []

    def available(self) -> bool:
        return self.installed

    def build_command(self, prompt: str, options: SendOptions, executable: str) -> tuple[list[str], str | None]:
        return [executable], prompt

    async def send_message(self, prompt: str, options: SendOptions | None = None) -> Response:
        self.prompts.append(prompt)
        model = options.model if options is not None else None
        self.models.append(model)
        outcome = self._outcomes.pop(0) if len(self._outcomes) > 1 else self._outcomes[0]
        if isinstance(outcome, BaseException):
            raise outcome
        return Response(text=outcome, exit_code=0, duration_seconds=1.0, provider=self.name, model=model)

    @property
    def call_count(self) -> int:
        return len(self.prompts)


def make_config(
    *providers: str,
    default: str | None = None,
    fallbacks: Sequence[str] = (),
    models: Mapping[str, Sequence[str]] | None = None,
    **overrides: Any,
) -> OrchestratorConfig:
    """OrchestratorConfig with the given providers in priority order."""
    names = providers or ("claude",)
    models = models or {}
    data: dict[str, Any] = {
        "default_provider": default or names[0],
        "fallback_providers": list(fallbacks),
        "providers": {
            name: ProviderConfig(priority=i + 1, models=list(models.get(name, ())))
            for i, name in enumerate(names)
        },
    }
    data.update(overrides)
    return OrchestratorConfig(**data)
