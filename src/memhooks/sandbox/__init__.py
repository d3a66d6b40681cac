"""Sandboxed execution runtime for hook commands."""

from memhooks.sandbox.executor import ExecutionResult, SandboxExecutor
from memhooks.sandbox.process import ProcessSandbox

__all__ = ["ExecutionResult", "ProcessSandbox", "SandboxExecutor"]
