"""Exceptions raised by the hook engine.

Only ``ConfigurationError`` and ``NotInitializedError`` reach callers of
``HookSystem``; ``CircuitOpenError`` is turned into a skipped result there.
"""

from __future__ import annotations


class HookError(Exception):
    """Base class for hook engine errors."""


class ConfigurationError(HookError):
    """Raised when hook or circuit breaker configuration is invalid."""


class NotInitializedError(HookError):
    """Raised when the hook system is used before initialize() or after close()."""


class CircuitOpenError(HookError):
    """Raised when a call is rejected because its circuit is open."""

    def __init__(self, key: str, message: str = "Circuit breaker is open") -> None:
        super().__init__(message)
        self.key = key


class TemplateError(HookError, ValueError):
    """Raised when a template event or its data does not have the expected shape."""
