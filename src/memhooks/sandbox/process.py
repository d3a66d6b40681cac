"""Local subprocess sandbox for hook commands."""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from collections.abc import Mapping

from memhooks.sandbox.environment import compose_environment, describe_environment
from memhooks.sandbox.executor import ExecutionResult, SandboxExecutor, split_command
from memhooks.types.config import SandboxConfig

logger = logging.getLogger(__name__)

_IS_POSIX = sys.platform != "win32"

# How much of stderr is folded into the error message for a failed command.
_STDERR_TAIL_CHARS = 500


class ProcessSandbox(SandboxExecutor):
    """Sandbox using plain subprocesses with an allow-list and a scoped environment.

    With the sandbox enabled the command is split into argv and spawned
    directly, so no shell ever interprets it, and the child sees only the
    configured base environment plus the variables passed in. With the sandbox
    disabled the command goes through the system shell and inherits the parent
    environment minus ``strip_env``.

    Each child runs in its own session so that a timeout can signal the whole
    process group: SIGTERM first, SIGKILL once ``kill_grace_sec`` has passed.
    """

    def __init__(self, config: SandboxConfig, *, kill_grace_sec: float = 1.0) -> None:
        super().__init__(config)
        self._kill_grace_sec = kill_grace_sec
        self._processes: set[asyncio.subprocess.Process] = set()

    @property
    def running(self) -> int:
        return len(self._processes)

    def build_env(self, variables: Mapping[str, str] | None = None) -> dict[str, str]:
        """Child environment for the given per-event variables."""
        if self._config.enabled:
            return compose_environment(variables or {}, self._config.env)
        return compose_environment(
            variables or {},
            self._config.env,
            inherit=os.environ,
            strip=self._config.strip_env,
        )

    async def execute(
        self,
        command: str,
        *,
        env: Mapping[str, str] | None = None,
        timeout_sec: float = 5.0,
        cwd: str | None = None,
    ) -> ExecutionResult:
        error = self.validate_command(command)
        if error:
            logger.warning("Hook command rejected: %s", error)
            return ExecutionResult(error=error)

        workdir = cwd or self._config.cwd
        if workdir and not os.path.isdir(workdir):
            return ExecutionResult(error=f"Working directory does not exist: {workdir}")

        child_env = self.build_env(env)
        logger.debug("Running %r (env: %s)", command, describe_environment(child_env))

        try:
            proc = await self._spawn(command, child_env, workdir)
        except FileNotFoundError:
            return ExecutionResult(error=f"Command not found: {command.split()[0]}")
        except OSError as exc:
            return ExecutionResult(error=f"Failed to start process: {exc}")

        self._processes.add(proc)
        try:
            try:
                stdout_bytes, stderr_bytes = await asyncio.wait_for(
                    proc.communicate(), timeout=timeout_sec,
                )
            except TimeoutError:
                await self._terminate(proc)
                timeout_ms = round(timeout_sec * 1000)
                logger.warning("Hook command timed out after %dms: %r", timeout_ms, command)
                return ExecutionResult(
                    timed_out=True,
                    error=f"Command timed out after {timeout_ms}ms",
                )
        finally:
            self._processes.discard(proc)

        stdout = stdout_bytes.decode("utf-8", errors="replace") if stdout_bytes else ""
        stderr = stderr_bytes.decode("utf-8", errors="replace") if stderr_bytes else ""
        exit_code = proc.returncode if proc.returncode is not None else 0

        if exit_code != 0:
            error = f"Command exited with code {exit_code}"
            tail = stderr.strip()[-_STDERR_TAIL_CHARS:]
            if tail:
                error = f"{error}: {tail}"
            return ExecutionResult(stdout=stdout, stderr=stderr, exit_code=exit_code, error=error)

        return ExecutionResult(stdout=stdout, stderr=stderr, exit_code=exit_code)

    async def _spawn(
        self, command: str, env: dict[str, str], cwd: str | None,
    ) -> asyncio.subprocess.Process:
        if self._config.enabled:
            return await asyncio.create_subprocess_exec(
                *split_command(command),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=cwd,
                env=env,
                start_new_session=_IS_POSIX,
            )
        return await asyncio.create_subprocess_shell(
            command,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
            start_new_session=_IS_POSIX,
        )

    async def _terminate(self, proc: asyncio.subprocess.Process) -> None:
        """SIGTERM the process group, escalating to SIGKILL after the grace period."""
        _signal(proc, force=False)
        try:
            await asyncio.wait_for(proc.wait(), timeout=self._kill_grace_sec)
        except TimeoutError:
            _signal(proc, force=True)
            await proc.wait()

    async def cleanup(self) -> None:
        """Terminate any hook processes still running."""
        if self._processes:
            logger.info("Terminating %d running hook process(es)", len(self._processes))
        for proc in list(self._processes):
            _signal(proc, force=False)
        self._processes.clear()


def _signal(proc: asyncio.subprocess.Process, *, force: bool) -> None:
    if proc.returncode is not None:
        return
    try:
        if _IS_POSIX:
            os.killpg(proc.pid, signal.SIGKILL if force else signal.SIGTERM)
        elif force:
            proc.kill()
        else:
            proc.terminate()
    except ProcessLookupError:
        pass
