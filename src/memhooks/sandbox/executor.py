"""SandboxExecutor ABC and command validation."""

from __future__ import annotations

import shlex
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass

from memhooks.types.config import SandboxConfig

# Characters that form shell control operators when they appear unquoted.
_OPERATOR_CHARS = frozenset(";&|<>()")


@dataclass(slots=True)
class ExecutionResult:
    """Result from sandboxed command execution.

    ``exit_code`` is ``None`` when the process never ran to completion
    (rejected, failed to spawn, or killed on timeout).
    """

    stdout: str = ""
    stderr: str = ""
    exit_code: int | None = None
    timed_out: bool = False
    error: str | None = None


class SandboxExecutor(ABC):
    """Abstract base for sandbox executors.

    Implementations report every failure through ``ExecutionResult.error``;
    ``execute`` must not raise for a bad command, a non-zero exit, or a timeout.
    """

    def __init__(self, config: SandboxConfig) -> None:
        self._config = config

    @property
    def config(self) -> SandboxConfig:
        return self._config

    @abstractmethod
    async def execute(
        self,
        command: str,
        *,
        env: Mapping[str, str] | None = None,
        timeout_sec: float = 5.0,
        cwd: str | None = None,
    ) -> ExecutionResult:
        """Execute a command in the sandbox."""
        ...

    def validate_command(self, command: str) -> str | None:
        """Check if a command may run. Returns an error message or None.

        With the sandbox disabled only empty commands are refused. Otherwise
        command substitution and unquoted control operators are refused before
        tokenizing, and the leading token must be on the allow-list.
        """
        if not command or not command.strip():
            return "Command cannot be empty"
        if not self._config.enabled:
            return None

        if "`" in command or "$(" in command:
            return f"Command not allowed: {command}"
        try:
            # Non-POSIX mode keeps quotes on tokens, so only bare operators are
            # made purely of operator characters.
            lexer = shlex.shlex(command, posix=False, punctuation_chars=True)
            lexer.whitespace_split = True
            raw_tokens = list(lexer)
        except ValueError as exc:
            return f"Invalid command: {exc}"
        for token in raw_tokens:
            if token and set(token) <= _OPERATOR_CHARS:
                return f"Command not allowed: {command}"

        try:
            argv = split_command(command)
        except ValueError as exc:
            return f"Invalid command: {exc}"
        if not argv:
            return "Invalid command"
        if argv[0] not in self._config.allowed_commands:
            return f"Command not allowed: {argv[0]}"
        return None

    @abstractmethod
    async def cleanup(self) -> None:
        """Release sandbox resources."""
        ...


def split_command(command: str) -> list[str]:
    """Split a shell-style command into argv. Raises ValueError on unbalanced quotes."""
    return shlex.split(command)
