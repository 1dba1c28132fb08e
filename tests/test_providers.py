"""Tests for the provider CLI adapters."""

import json
from datetime import timedelta
from unittest.mock import patch

import pytest

from baton.core.config import ProviderConfig
from baton.core.errors import (
    AuthenticationError,
    ErrorCategory,
    ProviderError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    RateLimitError,
)
from baton.providers import (
    AiderProvider,
    ClaudeProvider,
    CodexProvider,
    CursorProvider,
    GitHubCopilotProvider,
    SendOptions,
)
from baton.providers.executor import (
    CommandExecutor,
    CommandNotFoundError,
    CommandSpawnError,
    CommandTimeoutError,
)
from tests.helpers import FakeExecutor, failed, ok


class TestBuildCommand:
    """Each adapter produces the argv its CLI expects."""

    def test_claude(self):
        provider = ClaudeProvider()
        argv, stdin = provider.build_command(
            "hello",
            SendOptions(model="sonnet", session="s-1", dangerous_mode=True),
            "/bin/claude",
        )
        assert argv == [
            "/bin/claude", "--print", "--output-format=json",
            "--model", "sonnet",
            "--resume", "s-1",
            "--dangerously-skip-permissions",
        ]
        assert stdin == "hello"

    def test_claude_uses_configured_default_model(self):
        provider = ClaudeProvider(config=ProviderConfig(models=["opus", "sonnet"]))
        argv, _ = provider.build_command("hi", SendOptions(), "claude")
        assert argv[-2:] == ["--model", "opus"]

    def test_cursor(self):
        argv, stdin = CursorProvider().build_command(
            "hello", SendOptions(model="auto", dangerous_mode=True), "cursor-agent"
        )
        assert argv == ["cursor-agent", "-p", "--model", "auto", "--force"]
        assert stdin == "hello"

    def test_codex_passes_prompt_as_argument(self):
        argv, stdin = CodexProvider().build_command(
            "hello", SendOptions(session="abc"), "codex"
        )
        assert argv == ["codex", "exec", "--session", "abc", "--", "hello"]
        assert stdin is None

    def test_codex_prompt_starting_with_dash_stays_positional(self):
        argv, _ = CodexProvider().build_command("--help me", SendOptions(model="o3"), "codex")
        assert argv == ["codex", "exec", "--model", "o3", "--", "--help me"]

    def test_codex_default_flags_precede_separator(self):
        provider = CodexProvider(config=ProviderConfig(default_flags=["--json"]))
        argv, _ = provider.command("-v", SendOptions(), "codex")
        assert argv == ["codex", "exec", "--json", "--", "-v"]

    def test_copilot(self):
        argv, stdin = GitHubCopilotProvider().build_command(
            "hello", SendOptions(model="gpt-5"), "copilot"
        )
        assert argv == ["copilot", "-p", "hello", "--allow-all-tools", "--model", "gpt-5"]
        assert stdin is None

    def test_aider(self):
        argv, _ = AiderProvider().build_command("hello", SendOptions(session="x"), "aider")
        assert argv == [
            "aider", "--yes-always", "--message", "hello", "--no-auto-commits",
            "--restore-chat-history",
        ]


class TestMetadata:
    def test_names_and_binaries(self):
        assert ClaudeProvider.provider_name() == "claude"
        assert CursorProvider().binary == "cursor-agent"
        assert GitHubCopilotProvider().binary == "copilot"

    def test_binary_override(self):
        provider = ClaudeProvider(config=ProviderConfig(binary="/opt/claude"))
        assert provider.binary == "/opt/claude"

    def test_capabilities(self):
        assert ClaudeProvider().capabilities().vision is True
        assert AiderProvider().capabilities().sessions is False

    def test_positive_lookup_is_cached(self):
        with patch.object(CommandExecutor, "which", return_value="/opt/bin/claude") as which:
            provider = ClaudeProvider()
            assert provider.available()
            assert provider.available()
        which.assert_called_once_with("claude")

    def test_negative_lookup_is_retried(self):
        with patch.object(CommandExecutor, "which", side_effect=[None, "/opt/bin/codex"]) as which:
            provider = CodexProvider()
            assert not provider.available()
            assert provider.available()
        assert which.call_count == 2

    def test_available_uses_executor_lookup(self):
        executor = FakeExecutor(missing=["codex"])
        assert ClaudeProvider(executor=executor).available()
        assert not CodexProvider(executor=executor).available()


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_plain_text_response(self):
        executor = FakeExecutor({"cursor-agent": [ok("  the answer \n", duration=2.0)]})
        provider = CursorProvider(executor=executor)

        response = await provider.send_message("question")

        assert response.text == "the answer"
        assert response.provider == "cursor"
        assert response.duration_seconds == 2.0
        [call] = executor.calls
        assert call["stdin"] == "question"
        assert call["argv"][0] == "/usr/local/bin/cursor-agent"

    @pytest.mark.asyncio
    async def test_claude_json_result(self):
        payload = {
            "type": "result",
            "result": "Hi there",
            "is_error": False,
            "session_id": "sess-9",
            "total_cost_usd": 0.012,
            "usage": {"input_tokens": 10, "output_tokens": 5},
        }
        executor = FakeExecutor({"claude": [ok(json.dumps(payload))]})
        provider = ClaudeProvider(executor=executor)

        response = await provider.send_message("hello", SendOptions(model="sonnet"))

        assert response.text == "Hi there"
        assert response.session_id == "sess-9"
        assert response.model == "sonnet"
        assert response.usage.total_tokens == 15
        assert response.usage.cost_usd == 0.012

    @pytest.mark.asyncio
    async def test_claude_malformed_usage_counts_as_zero(self):
        payload = {
            "result": "Hi there",
            "total_cost_usd": "n/a",
            "usage": {"input_tokens": "lots", "output_tokens": None},
        }
        executor = FakeExecutor({"claude": [ok(json.dumps(payload))]})

        response = await ClaudeProvider(executor=executor).send_message("hello")

        assert response.text == "Hi there"
        assert response.usage.total_tokens == 0
        assert response.usage.cost_usd is None

    @pytest.mark.asyncio
    async def test_claude_json_error_is_classified(self):
        payload = {"result": "Claude AI usage limit reached|1767225600", "is_error": True}
        executor = FakeExecutor({"claude": [ok(json.dumps(payload))]})

        with pytest.raises(RateLimitError) as exc_info:
            await ClaudeProvider(executor=executor).send_message("hello")
        assert exc_info.value.provider == "claude"

    @pytest.mark.asyncio
    async def test_default_flags_env_and_timeout(self):
        executor = FakeExecutor()
        config = ProviderConfig(default_flags=["--verbose"], env={"A": "1"}, timeout_seconds=42)
        provider = ClaudeProvider(config=config, executor=executor)

        await provider.send_message("hello")
        await provider.send_message("hello", SendOptions(timeout=5))

        first, second = executor.calls
        assert first["argv"][-1] == "--verbose"
        assert first["env"] == {"A": "1"}
        assert first["timeout"] == 42
        assert second["timeout"] == 5

    @pytest.mark.asyncio
    async def test_not_installed(self):
        provider = CodexProvider(executor=FakeExecutor(missing=["codex"]))
        with pytest.raises(ProviderUnavailableError, match="codex not found"):
            await provider.send_message("hello")

    @pytest.mark.asyncio
    async def test_spawn_failure_is_unavailable(self):
        executor = FakeExecutor({"codex": [CommandNotFoundError("codex", "No such file")]})
        provider = CodexProvider(executor=executor)
        with pytest.raises(ProviderUnavailableError):
            await provider.send_message("hello")

    @pytest.mark.asyncio
    async def test_exec_refusal_is_unavailable(self):
        executor = FakeExecutor({"codex": [CommandSpawnError("codex", "Exec format error")]})
        provider = CodexProvider(executor=executor)
        with pytest.raises(ProviderUnavailableError, match="Exec format error"):
            await provider.send_message("hello")

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_unrunnable_binary_is_unavailable(self, tmp_path):
        binary = tmp_path / "cursor-agent"
        binary.write_bytes(b"\x00\x01garbage")
        binary.chmod(0o755)
        provider = CursorProvider(config=ProviderConfig(binary=str(binary)))

        with pytest.raises(ProviderUnavailableError) as exc_info:
            await provider.send_message("hello")
        assert exc_info.value.provider == "cursor"

    @pytest.mark.asyncio
    async def test_timeout(self):
        executor = FakeExecutor({"aider": [CommandTimeoutError("aider", 30, 30.1)]})
        with pytest.raises(ProviderTimeoutError) as exc_info:
            await AiderProvider(executor=executor).send_message("hello")
        assert exc_info.value.category is ErrorCategory.TIMEOUT
        assert exc_info.value.timeout == 300

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "provider_cls,binary,stderr,category",
        [
            (CursorProvider, "cursor-agent", "You've hit your usage limit", ErrorCategory.RATE_LIMITED),
            (CursorProvider, "cursor-agent", "Upgrade to Pro for more", ErrorCategory.QUOTA_EXCEEDED),
            (ClaudeProvider, "claude", "Invalid API key · Please run /login", ErrorCategory.AUTH_EXPIRED),
            (ClaudeProvider, "claude", "Prompt is too long", ErrorCategory.PERMANENT),
            (ClaudeProvider, "claude", "overloaded_error", ErrorCategory.TRANSIENT),
            (CodexProvider, "codex", "error: insufficient_quota", ErrorCategory.QUOTA_EXCEEDED),
            (GitHubCopilotProvider, "copilot", "Run gh auth login first", ErrorCategory.AUTH_EXPIRED),
            (AiderProvider, "aider", "litellm.RateLimitError: slow down", ErrorCategory.RATE_LIMITED),
        ],
    )
    async def test_failure_classification(self, provider_cls, binary, stderr, category):
        executor = FakeExecutor({binary: [failed(stderr)]})
        with pytest.raises(ProviderError) as exc_info:
            await provider_cls(executor=executor).send_message("hello")
        assert exc_info.value.category is category

    @pytest.mark.asyncio
    async def test_rate_limit_reset_time_parsed(self, clock):
        executor = FakeExecutor({"claude": [failed("5-hour limit reached · resets in 2 hours")]})
        provider = ClaudeProvider(executor=executor, clock=clock)

        with pytest.raises(RateLimitError) as exc_info:
            await provider.send_message("hello")

        assert exc_info.value.reset_time == clock.now() + timedelta(hours=2)

    @pytest.mark.asyncio
    async def test_auth_failure_type(self):
        executor = FakeExecutor({"cursor-agent": [failed("Not authenticated. Run cursor-agent login")]})
        with pytest.raises(AuthenticationError):
            await CursorProvider(executor=executor).send_message("hello")

    @pytest.mark.asyncio
    async def test_failure_message_redacted_and_truncated(self):
        stderr = "bad key sk-abcdefghijklmnop " + "x" * 1000
        executor = FakeExecutor({"codex": [failed(stderr)]})

        with pytest.raises(ProviderError) as exc_info:
            await CodexProvider(executor=executor).send_message("hello")

        message = exc_info.value.message
        assert "sk-abcdefghijklmnop" not in message
        assert len(message) == 500

    @pytest.mark.asyncio
    async def test_empty_output_failure(self):
        executor = FakeExecutor({"codex": [failed("", exit_code=137)]})
        with pytest.raises(ProviderError, match="exited with code 137"):
            await CodexProvider(executor=executor).send_message("hello")
