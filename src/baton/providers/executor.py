"""Subprocess execution for provider CLIs.

Handles spawn, stdin delivery, timeout and cleanup. Providers compose a
CommandExecutor and convert its exceptions into classified ProviderErrors.

Security Note: Uses asyncio.create_subprocess_exec() which is shell-injection
safe - arguments are passed as a list, not interpolated into a shell command.

The executor never retries; retry policy belongs to the Conductor.
"""

from __future__ import annotations

import asyncio
import os
import shutil
import signal
import time
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from baton.core.constants import GRACEFUL_TERMINATION_SECONDS
from baton.core.logging import get_logger

_logger = get_logger("executor")


class CommandTimeoutError(TimeoutError):
    """Raised when a command exceeds its timeout and has been killed."""

    def __init__(self, command: str, timeout: float, duration_seconds: float) -> None:
        super().__init__(f"{command} timed out after {timeout:g}s")
        self.command = command
        self.timeout = timeout
        self.duration_seconds = duration_seconds


class CommandSpawnError(OSError):
    """Raised when the operating system refuses to start a command."""

    def __init__(self, command: str, reason: str) -> None:
        super().__init__(f"cannot execute {command}: {reason}")
        self.command = command
        self.reason = reason


class CommandNotFoundError(CommandSpawnError):
    """Raised when a command is missing or not executable."""


@dataclass(frozen=True)
class CommandResult:
    """Result of running a command to completion."""

    stdout: str
    stderr: str
    exit_code: int
    duration_seconds: float

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class CommandExecutor:
    """Runs external commands with timeout and process-group cleanup.

    Features:
    - Process group isolation (start_new_session=True)
    - SIGTERM, grace period, then SIGKILL on timeout or cancellation
    - Extra environment merged on top of os.environ

    Usage:
        executor = CommandExecutor()
        result = await executor.execute(["claude", "--print"], timeout=300, stdin=prompt)
    """

    def __init__(self, grace_period_seconds: float = GRACEFUL_TERMINATION_SECONDS) -> None:
        self.grace_period_seconds = grace_period_seconds

    @staticmethod
    def which(binary_name: str, path: str | None = None) -> str | None:
        """Resolve an executable on PATH (or an explicit search path)."""
        return shutil.which(binary_name, path=path)

    async def execute(
        self,
        command: Sequence[str],
        timeout: float,
        env: Mapping[str, str] | None = None,
        stdin: str | None = None,
        cwd: Path | str | None = None,
    ) -> CommandResult:
        """Run a command to completion.

        Args:
            command: Executable and arguments.
            timeout: Seconds before the process group is terminated.
            env: Extra environment variables, merged over os.environ.
            stdin: Text written to the process's standard input.
            cwd: Working directory for the process.

        Returns:
            CommandResult with decoded output and exit code. A process killed
            by a signal reports the negated signal number as exit code.

        Raises:
            CommandTimeoutError: The command exceeded ``timeout``.
            CommandNotFoundError: The command is missing or not executable.
            CommandSpawnError: The OS refused to start the command.
            asyncio.CancelledError: The caller was cancelled; the process has
                been killed and reaped.
        """
        argv = list(command)
        program = argv[0]
        merged_env = {**os.environ, **(env or {})}
        start_time = time.monotonic()

        _logger.debug(
            "process.starting",
            command=program,
            args_count=len(argv) - 1,
            cwd=str(cwd) if cwd else None,
            timeout_seconds=timeout,
            stdin_chars=len(stdin) if stdin is not None else 0,
        )

        try:
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=merged_env,
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError, NotADirectoryError) as e:
            _logger.warning("process.spawn_failed", command=program, error=str(e))
            raise CommandNotFoundError(program, e.strerror or str(e)) from e
        except OSError as e:
            # Any other exec refusal, e.g. ENOEXEC or E2BIG
            _logger.warning("process.spawn_failed", command=program, error=str(e))
            raise CommandSpawnError(program, e.strerror or str(e)) from e

        input_bytes = stdin.encode("utf-8") if stdin is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(
                process.communicate(input=input_bytes),
                timeout=timeout,
            )
        except TimeoutError:
            await self._terminate(process)
            duration = time.monotonic() - start_time
            _logger.warning(
                "process.timeout",
                pid=process.pid,
                timeout_seconds=timeout,
                duration_seconds=round(duration, 3),
            )
            raise CommandTimeoutError(program, timeout, duration) from None
        except asyncio.CancelledError:
            _logger.warning("process.cancelled", pid=process.pid)
            await self._terminate(process)
            raise

        duration = time.monotonic() - start_time
        exit_code = process.returncode if process.returncode is not None else -1

        _logger.debug(
            "process.completed",
            pid=process.pid,
            exit_code=exit_code,
            duration_seconds=round(duration, 3),
            stdout_bytes=len(stdout),
            stderr_bytes=len(stderr),
        )

        return CommandResult(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=exit_code,
            duration_seconds=duration,
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, then SIGKILL it after the grace period."""
        if process.returncode is not None:
            return
        self._signal_group(process, signal.SIGTERM)
        try:
            await asyncio.wait_for(process.wait(), timeout=self.grace_period_seconds)
            return
        except TimeoutError:
            _logger.warning("process.kill", pid=process.pid)
        self._signal_group(process, signal.SIGKILL)
        await process.wait()

    @staticmethod
    def _signal_group(process: asyncio.subprocess.Process, sig: signal.Signals) -> None:
        try:
            os.killpg(os.getpgid(process.pid), sig)
        except ProcessLookupError:
            # Group already gone; fall back to the leader itself
            try:
                process.send_signal(sig)
            except ProcessLookupError:
                return
