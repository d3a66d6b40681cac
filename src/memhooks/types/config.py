"""Configuration types for memhooks."""

from __future__ import annotations

from dataclasses import dataclass, field

from memhooks.types.hooks import HookDefinition

DEFAULT_ALLOWED_COMMANDS: tuple[str, ...] = ("claude-memory", "echo", "date")


@dataclass(frozen=True, slots=True)
class SandboxConfig:
    """Configuration for the sandboxed execution runtime."""

    enabled: bool = True
    allowed_commands: tuple[str, ...] = DEFAULT_ALLOWED_COMMANDS
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    # Only consulted when the sandbox is disabled and the parent env is inherited
    strip_env: tuple[str, ...] = (
        "ANTHROPIC_API_KEY",
        "OPENAI_API_KEY",
        "GOOGLE_API_KEY",
        "AWS_SECRET_ACCESS_KEY",
        "GITHUB_TOKEN",
    )


@dataclass(frozen=True, slots=True)
class ExecutionConfig:
    """Default execution limits. Memory and CPU are advisory."""

    timeout_ms: int = 5000
    max_memory: str = "100MB"
    max_cpu: int = 1


@dataclass(frozen=True, slots=True)
class CircuitBreakerConfig:
    """Circuit breaker thresholds. Validated by the breaker itself."""

    failure_threshold: int = 5
    reset_timeout_ms: int = 60_000
    half_open_requests: int = 3


@dataclass(frozen=True, slots=True)
class HookConfig:
    """Everything the hook system consumes at initialization."""

    hooks: dict[str, tuple[HookDefinition, ...]] = field(default_factory=dict)
    sandbox: SandboxConfig = field(default_factory=SandboxConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)
    circuit_breaker: CircuitBreakerConfig = field(default_factory=CircuitBreakerConfig)

    def definitions_for(self, event_type: str) -> tuple[HookDefinition, ...]:
        return self.hooks.get(event_type, ())

    @property
    def hook_count(self) -> int:
        return sum(len(defs) for defs in self.hooks.values())
