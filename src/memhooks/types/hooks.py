"""Hook types for the memhooks event system."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any


class HookEventType(str, Enum):
    """Well-known lifecycle events. Custom event type strings are also accepted."""

    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_MESSAGE = "PreMessage"
    MESSAGE = "Message"
    POST_MESSAGE = "PostMessage"
    SESSION_START = "SessionStart"
    SESSION_END = "SessionEnd"


class OutputFormat(Enum):
    """How a hook's stdout is interpreted."""

    RAW = "raw"
    JSON = "json"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _freeze(value: Any) -> Any:
    """Read-only copy of nested event data: mappings become proxies, lists tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(v) for v in value)
    return value


@dataclass(frozen=True, slots=True)
class HookEvent:
    """A lifecycle event delivered to the hook system."""

    type: str
    tool: str | None = None
    data: Mapping[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self) -> None:
        if isinstance(self.type, HookEventType):
            object.__setattr__(self, "type", self.type.value)
        object.__setattr__(self, "data", _freeze(self.data or {}))


@dataclass(frozen=True, slots=True)
class HookDefinition:
    """A configured command bound to an event type."""

    command: str
    matcher: str | None = None  # Regex tested against the tool name
    id: str | None = None
    output_format: OutputFormat = OutputFormat.RAW
    timeout_ms: int | None = None

    @property
    def matches_all(self) -> bool:
        return self.matcher is None or self.matcher in ("", "*")

    @property
    def key(self) -> str:
        """Circuit breaker key: the explicit id, else derived from matcher and command."""
        if self.id:
            return self.id
        return f"{self.matcher or '*'}:{self.command}"


@dataclass(frozen=True, slots=True)
class HookExecutionResult:
    """Outcome of running a single hook.

    ``parsed`` is only meaningful when the hook declared JSON output and the
    output parsed; ``parse_error`` is set instead when it did not.
    """

    output: str = ""
    parsed: Any = None
    parse_error: str | None = None
    error: str | None = None
    exit_code: int | None = None
    skipped: bool = False
    reason: str | None = None
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.error is None and not self.skipped

    @classmethod
    def skipped_result(cls, reason: str) -> HookExecutionResult:
        return cls(skipped=True, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        """Serialise, leaving out fields that carry no information."""
        data: dict[str, Any] = {}
        if self.skipped:
            data["skipped"] = True
            data["reason"] = self.reason
            return data
        data["output"] = self.output
        if self.parse_error is not None:
            data["parse_error"] = self.parse_error
        elif self.parsed is not None:
            data["parsed"] = self.parsed
        if self.error is not None:
            data["error"] = self.error
        if self.exit_code is not None:
            data["exit_code"] = self.exit_code
        if self.timed_out:
            data["timed_out"] = True
        return data


@dataclass(frozen=True, slots=True)
class AggregateResult:
    """Results for an event that matched more than one hook, in configuration order."""

    results: tuple[HookExecutionResult, ...] = ()

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    def to_dict(self) -> dict[str, Any]:
        return {"results": [r.to_dict() for r in self.results]}


@dataclass(frozen=True, slots=True)
class HookExecutionRecord:
    """Timing and outcome of one hook execution, handed to a recorder."""

    hook_id: str
    event_type: str
    tool: str | None
    duration_ms: float
    success: bool
    skipped: bool = False
    timed_out: bool = False
    exit_code: int | None = None


HookRecorder = Callable[[HookExecutionRecord], None]
