"""Hook execution engine."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

from memhooks.hooks.circuit_breaker import CircuitBreaker
from memhooks.hooks.errors import CircuitOpenError, NotInitializedError
from memhooks.hooks.matcher import match_hooks
from memhooks.hooks.results import circuit_open_result, failure_result, shape_result
from memhooks.sandbox.environment import event_variables
from memhooks.sandbox.executor import SandboxExecutor
from memhooks.sandbox.process import ProcessSandbox
from memhooks.types.config import HookConfig
from memhooks.types.hooks import (
    AggregateResult,
    HookDefinition,
    HookEvent,
    HookExecutionRecord,
    HookExecutionResult,
    HookRecorder,
)

logger = logging.getLogger(__name__)


class SystemState(Enum):
    """Lifecycle of a HookSystem. CLOSED is terminal."""

    UNINITIALIZED = "uninitialized"
    INITIALIZED = "initialized"
    CLOSED = "closed"


def _is_failure(result: HookExecutionResult) -> bool:
    # Spawn errors, rejected commands, non-zero exits and timeouts all count
    # against the circuit. JSON parse errors do not.
    return result.error is not None


class HookSystem:
    """Runs configured hook commands for lifecycle events.

    Every matching hook runs under its own circuit breaker key, concurrently
    with its siblings. Whatever goes wrong inside one hook ends up in that
    hook's result; ``execute_hook`` itself only raises
    ``NotInitializedError``.
    """

    def __init__(
        self,
        config: HookConfig | None = None,
        *,
        executor: SandboxExecutor | None = None,
        recorder: HookRecorder | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or HookConfig()
        # Validates the breaker settings; raises ConfigurationError
        self._breaker = CircuitBreaker(self._config.circuit_breaker, clock=clock)
        self._executor = executor
        self._recorder = recorder
        self._state = SystemState.UNINITIALIZED

    @property
    def config(self) -> HookConfig:
        return self._config

    @property
    def state(self) -> SystemState:
        return self._state

    @property
    def circuit_breaker(self) -> CircuitBreaker:
        return self._breaker

    async def initialize(self) -> None:
        if self._state is SystemState.CLOSED:
            raise NotInitializedError("Hook system is closed and cannot be re-initialized")
        if self._state is SystemState.INITIALIZED:
            return

        logger.info("Initializing hook system...")
        if self._executor is None:
            self._executor = ProcessSandbox(self._config.sandbox)
        self._state = SystemState.INITIALIZED
        logger.info(
            "Hook system initialized (%d hooks, sandbox %s)",
            self._config.hook_count,
            "enabled" if self._config.sandbox.enabled else "disabled",
        )

    async def execute_hook(
        self, event: HookEvent,
    ) -> HookExecutionResult | AggregateResult | None:
        """Run every hook matching *event*.

        Returns ``None`` when nothing matched, the single result when exactly
        one hook matched, and an ``AggregateResult`` in configuration order
        otherwise.
        """
        if self._state is not SystemState.INITIALIZED or self._executor is None:
            raise NotInitializedError("Hook system not initialized")

        definitions = match_hooks(event, self._config.definitions_for(event.type))
        if not definitions:
            logger.debug("No hooks matched %s (tool=%s)", event.type, event.tool)
            return None

        logger.debug(
            "Executing %d hook(s) for %s (tool=%s)", len(definitions), event.type, event.tool,
        )
        variables = event_variables(event)
        # Tasks start in list order, so circuit decisions follow configuration order
        results = await asyncio.gather(
            *(self._run(definition, event, variables) for definition in definitions),
        )

        if len(results) == 1:
            return results[0]
        return AggregateResult(results=tuple(results))

    async def close(self) -> None:
        if self._state is SystemState.CLOSED:
            return
        logger.info("Closing hook system...")
        if self._executor is not None:
            await self._executor.cleanup()
        self._state = SystemState.CLOSED
        logger.info("Hook system closed")

    async def __aenter__(self) -> HookSystem:
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def _run(
        self,
        definition: HookDefinition,
        event: HookEvent,
        variables: Mapping[str, str],
    ) -> HookExecutionResult:
        key = definition.key
        timeout_ms = definition.timeout_ms or self._config.execution.timeout_ms
        started = time.monotonic()

        try:
            result = await self._breaker.execute(
                key,
                lambda: self._invoke(definition, variables, timeout_ms),
                is_failure=_is_failure,
            )
        except CircuitOpenError:
            logger.info("Skipping hook %s: circuit breaker open", key)
            result = circuit_open_result()
        except Exception as exc:
            logger.warning("Hook %s failed: %s", key, exc, exc_info=True)
            result = failure_result(exc)

        self._report(definition, event, result, (time.monotonic() - started) * 1000)
        return result

    async def _invoke(
        self,
        definition: HookDefinition,
        variables: Mapping[str, str],
        timeout_ms: int,
    ) -> HookExecutionResult:
        assert self._executor is not None
        raw = await self._executor.execute(
            definition.command,
            env=variables,
            timeout_sec=timeout_ms / 1000,
        )
        return shape_result(raw, definition.output_format)

    def _report(
        self,
        definition: HookDefinition,
        event: HookEvent,
        result: HookExecutionResult,
        duration_ms: float,
    ) -> None:
        if self._recorder is None:
            return
        record = HookExecutionRecord(
            hook_id=definition.key,
            event_type=event.type,
            tool=event.tool,
            duration_ms=duration_ms,
            success=result.success,
            skipped=result.skipped,
            timed_out=result.timed_out,
            exit_code=result.exit_code,
        )
        try:
            self._recorder(record)
        except Exception as exc:
            logger.warning("Hook recorder raised, ignoring: %s", exc)
