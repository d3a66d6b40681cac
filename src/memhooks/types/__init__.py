"""Type definitions for memhooks."""

from memhooks.types.config import (
    CircuitBreakerConfig,
    ExecutionConfig,
    HookConfig,
    SandboxConfig,
)
from memhooks.types.hooks import (
    AggregateResult,
    HookDefinition,
    HookEvent,
    HookEventType,
    HookExecutionRecord,
    HookExecutionResult,
    HookRecorder,
    OutputFormat,
)

__all__ = [
    "AggregateResult",
    "CircuitBreakerConfig",
    "ExecutionConfig",
    "HookConfig",
    "HookDefinition",
    "HookEvent",
    "HookEventType",
    "HookExecutionRecord",
    "HookExecutionResult",
    "HookRecorder",
    "OutputFormat",
    "SandboxConfig",
]
