"""Test fixtures including MockSandboxExecutor and a controllable clock."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from memhooks.sandbox.executor import ExecutionResult
from memhooks.types.config import (
    CircuitBreakerConfig,
    ExecutionConfig,
    HookConfig,
    SandboxConfig,
)
from memhooks.types.hooks import HookDefinition

ENV_OVERRIDES = (
    "HOOK_TIMEOUT",
    "HOOK_MAX_MEMORY",
    "HOOK_MAX_CPU",
    "CIRCUIT_FAILURE_THRESHOLD",
    "CIRCUIT_RESET_TIMEOUT",
    "CIRCUIT_HALF_OPEN_REQUESTS",
    "SANDBOX_ENABLED",
    "SANDBOX_ALLOWED_COMMANDS",
    "SANDBOX_ENV",
)


@pytest.fixture(autouse=True)
def _clean_hook_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's shell from leaking config overrides into tests."""
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)


class FakeClock:
    """Monotonic clock that only moves when told to. Reads in seconds."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance_ms(self, ms: float) -> None:
        self.now += ms / 1000


class MockSandboxExecutor:
    """A mock sandbox executor that returns scripted results.

    Each scripted item is either an ExecutionResult to return or an exception
    instance to raise. Once the script runs out, ``default`` is returned.

    Usage:
        executor = MockSandboxExecutor(results=[
            ExecutionResult(stdout="ok\\n", exit_code=0),
            ExecutionResult(exit_code=1, error="Command exited with code 1"),
            RuntimeError("spawn exploded"),
        ])
    """

    def __init__(
        self,
        results: list[ExecutionResult | BaseException] | None = None,
        *,
        default: ExecutionResult | None = None,
        delay_sec: float = 0.0,
    ) -> None:
        self._results = list(results or [])
        self._default = default or ExecutionResult(stdout="ok\n", exit_code=0)
        self._delay_sec = delay_sec
        self._calls: list[dict[str, Any]] = []
        self.cleaned_up = False

    async def execute(
        self,
        command: str,
        *,
        env: Mapping[str, str] | None = None,
        timeout_sec: float = 5.0,
        cwd: str | None = None,
    ) -> ExecutionResult:
        self._calls.append({
            "command": command,
            "env": dict(env or {}),
            "timeout_sec": timeout_sec,
            "cwd": cwd,
        })
        if self._delay_sec:
            await asyncio.sleep(self._delay_sec)
        if self._results:
            item = self._results.pop(0)
            if isinstance(item, BaseException):
                raise item
            return item
        return self._default

    def validate_command(self, command: str) -> str | None:
        return None

    async def cleanup(self) -> None:
        self.cleaned_up = True

    @property
    def calls(self) -> list[dict[str, Any]]:
        return self._calls

    @property
    def commands(self) -> list[str]:
        return [c["command"] for c in self._calls]


def make_config(
    hooks: dict[str, list[HookDefinition]] | None = None,
    *,
    enabled: bool = True,
    allowed_commands: tuple[str, ...] = ("echo", "sh", "sleep", "env", "date", "false", "printf"),
    env: dict[str, str] | None = None,
    timeout_ms: int = 5000,
    failure_threshold: int = 5,
    reset_timeout_ms: int = 60_000,
    half_open_requests: int = 3,
) -> HookConfig:
    """HookConfig with permissive defaults for tests that spawn real processes."""
    return HookConfig(
        hooks={k: tuple(v) for k, v in (hooks or {}).items()},
        sandbox=SandboxConfig(
            enabled=enabled,
            allowed_commands=allowed_commands,
            env=env or {},
        ),
        execution=ExecutionConfig(timeout_ms=timeout_ms),
        circuit_breaker=CircuitBreakerConfig(
            failure_threshold=failure_threshold,
            reset_timeout_ms=reset_timeout_ms,
            half_open_requests=half_open_requests,
        ),
    )


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_sandbox_executor() -> MockSandboxExecutor:
    return MockSandboxExecutor()
