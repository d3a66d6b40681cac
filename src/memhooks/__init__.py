"""memhooks -- lifecycle hook execution engine for AI coding assistants.

Usage:
    import memhooks

    config = memhooks.load_hook_config()
    async with memhooks.HookSystem(config) as system:
        result = await system.execute_hook(
            memhooks.build_hook_event("PreToolUse", tool="Write", data={"file_path": "a.py"})
        )
"""

from memhooks.core.config import load_hook_config, parse_hook_config
from memhooks.hooks.circuit_breaker import CircuitBreaker, CircuitState, CircuitStats
from memhooks.hooks.errors import (
    CircuitOpenError,
    ConfigurationError,
    HookError,
    NotInitializedError,
    TemplateError,
)
from memhooks.hooks.events import build_hook_event, event_from_payload
from memhooks.hooks.system import HookSystem
from memhooks.hooks.templates import (
    HOOK_DEFAULTS,
    HOOK_EXECUTION_ORDER,
    BaseHookTemplate,
    TemplateResponse,
    TemplateType,
    create_template,
    sanitize_data,
)
from memhooks.sandbox.executor import ExecutionResult, SandboxExecutor
from memhooks.sandbox.process import ProcessSandbox
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
    OutputFormat,
)

__version__ = "0.1.0"

__all__ = [
    # Core API
    "HookSystem",
    "build_hook_event",
    "event_from_payload",
    "load_hook_config",
    "parse_hook_config",
    # Circuit breaker
    "CircuitBreaker",
    "CircuitState",
    "CircuitStats",
    # Sandbox
    "ExecutionResult",
    "ProcessSandbox",
    "SandboxExecutor",
    # Memory hook templates
    "BaseHookTemplate",
    "HOOK_DEFAULTS",
    "HOOK_EXECUTION_ORDER",
    "TemplateResponse",
    "TemplateType",
    "create_template",
    "sanitize_data",
    # Types
    "AggregateResult",
    "CircuitBreakerConfig",
    "ExecutionConfig",
    "HookConfig",
    "HookDefinition",
    "HookEvent",
    "HookEventType",
    "HookExecutionRecord",
    "HookExecutionResult",
    "OutputFormat",
    "SandboxConfig",
    # Errors
    "CircuitOpenError",
    "ConfigurationError",
    "HookError",
    "NotInitializedError",
    "TemplateError",
]
