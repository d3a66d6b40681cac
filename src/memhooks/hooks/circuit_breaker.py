"""Per-key circuit breaker guarding hook executions."""

from __future__ import annotations

import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TypeVar

from memhooks.hooks.errors import CircuitOpenError, ConfigurationError
from memhooks.types.config import CircuitBreakerConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    """States of a single circuit."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


@dataclass(slots=True)
class CircuitRecord:
    """Mutable bookkeeping for one operation key."""

    state: CircuitState = CircuitState.CLOSED
    consecutive_failures: int = 0
    last_failure_time: float | None = None
    half_open_successes: int = 0
    half_open_in_flight: int = 0
    total_requests: int = 0
    total_failures: int = 0
    total_successes: int = 0


@dataclass(frozen=True, slots=True)
class CircuitStats:
    """Read-only snapshot of a circuit."""

    state: CircuitState
    failures: int
    successes: int
    total_requests: int
    total_failures: int
    last_failure_time: float | None


class CircuitBreaker:
    """Runs operations under a named key, opening the circuit after repeated failures.

    Each key has an independent record, created on first use. While a circuit
    is open the operation is never invoked; once ``reset_timeout_ms`` has
    elapsed since the last failure the next call becomes a half-open probe.
    ``half_open_requests`` successful probes close the circuit again, a single
    failed probe reopens it.

    The breaker belongs to whoever constructs it. Record updates happen under
    one lock and never span an ``await``, so concurrent callers sharing a key
    see consistent threshold checks.
    """

    def __init__(
        self,
        config: CircuitBreakerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        config = config or CircuitBreakerConfig()
        if config.failure_threshold < 1:
            raise ConfigurationError("Failure threshold must be at least 1")
        if config.reset_timeout_ms <= 0:
            raise ConfigurationError("Reset timeout must be positive")
        if config.half_open_requests < 1:
            raise ConfigurationError("Half-open requests must be at least 1")

        self._config = config
        self._clock = clock
        self._circuits: dict[str, CircuitRecord] = {}
        self._lock = threading.Lock()

    @property
    def config(self) -> CircuitBreakerConfig:
        return self._config

    async def execute(
        self,
        key: str,
        operation: Callable[[], Awaitable[T] | T],
        *,
        is_failure: Callable[[T], bool] | None = None,
    ) -> T:
        """Run *operation* under the circuit for *key*.

        Raises ``CircuitOpenError`` without invoking the operation when the
        circuit is open. Exceptions from the operation are recorded as failures
        and re-raised. When *is_failure* is given, a returned value for which it
        is true also counts as a failure but is returned normally.
        """
        self._admit(key)

        try:
            result = operation()
            if inspect.isawaitable(result):
                result = await result
        except Exception:
            self._record_failure(key)
            raise
        except BaseException:
            # Cancelled; neither a success nor a failure
            self._release(key)
            raise

        if is_failure is not None and is_failure(result):
            self._record_failure(key)
        else:
            self._record_success(key)
        return result

    def get_state(self, key: str) -> CircuitState:
        with self._lock:
            return self._circuit(key).state

    def get_stats(self, key: str) -> CircuitStats:
        with self._lock:
            return self._snapshot(self._circuit(key))

    def get_all_stats(self) -> dict[str, CircuitStats]:
        with self._lock:
            return {key: self._snapshot(c) for key, c in self._circuits.items()}

    def reset(self, key: str | None = None) -> None:
        """Force one circuit (or every tracked circuit) back to closed with zeroed counters."""
        with self._lock:
            if key is not None:
                self._circuits[key] = CircuitRecord()
                logger.info("Circuit for %s reset", key)
                return
            for name in self._circuits:
                self._circuits[name] = CircuitRecord()
            logger.info("All circuits reset (%d)", len(self._circuits))

    def _circuit(self, key: str) -> CircuitRecord:
        circuit = self._circuits.get(key)
        if circuit is None:
            circuit = CircuitRecord()
            self._circuits[key] = circuit
        return circuit

    @staticmethod
    def _snapshot(circuit: CircuitRecord) -> CircuitStats:
        return CircuitStats(
            state=circuit.state,
            failures=circuit.consecutive_failures,
            successes=circuit.total_successes,
            total_requests=circuit.total_requests,
            total_failures=circuit.total_failures,
            last_failure_time=circuit.last_failure_time,
        )

    def _admit(self, key: str) -> None:
        """Decide whether a call may proceed, moving open circuits to half-open when due."""
        with self._lock:
            circuit = self._circuit(key)

            if circuit.state is CircuitState.OPEN:
                elapsed_ms = (self._clock() - (circuit.last_failure_time or 0.0)) * 1000
                if elapsed_ms < self._config.reset_timeout_ms:
                    raise CircuitOpenError(key)
                logger.info("Circuit for %s entering half-open state", key)
                circuit.state = CircuitState.HALF_OPEN
                circuit.half_open_successes = 0
                circuit.half_open_in_flight = 0

            if circuit.state is CircuitState.HALF_OPEN:
                admitted = circuit.half_open_successes + circuit.half_open_in_flight
                if admitted >= self._config.half_open_requests:
                    raise CircuitOpenError(key)
                circuit.half_open_in_flight += 1

    def _record_success(self, key: str) -> None:
        with self._lock:
            circuit = self._circuit(key)
            circuit.total_requests += 1
            circuit.total_successes += 1

            if circuit.state is CircuitState.HALF_OPEN:
                circuit.half_open_in_flight = max(0, circuit.half_open_in_flight - 1)
                circuit.half_open_successes += 1
                if circuit.half_open_successes >= self._config.half_open_requests:
                    logger.info("Circuit for %s closed after successful half-open period", key)
                    circuit.state = CircuitState.CLOSED
                    circuit.consecutive_failures = 0
                    circuit.half_open_successes = 0
                    circuit.half_open_in_flight = 0
            elif circuit.state is CircuitState.CLOSED:
                circuit.consecutive_failures = 0

    def _record_failure(self, key: str) -> None:
        with self._lock:
            circuit = self._circuit(key)
            circuit.total_requests += 1
            circuit.total_failures += 1
            circuit.consecutive_failures += 1
            circuit.last_failure_time = self._clock()

            if circuit.state is CircuitState.HALF_OPEN:
                logger.warning("Circuit for %s returned to open state after half-open failure", key)
                circuit.state = CircuitState.OPEN
                circuit.half_open_successes = 0
                circuit.half_open_in_flight = 0
            elif (
                circuit.state is CircuitState.CLOSED
                and circuit.consecutive_failures >= self._config.failure_threshold
            ):
                logger.warning(
                    "Circuit for %s opened after %d failures", key, circuit.consecutive_failures,
                )
                circuit.state = CircuitState.OPEN

    def _release(self, key: str) -> None:
        with self._lock:
            circuit = self._circuit(key)
            if circuit.state is CircuitState.HALF_OPEN:
                circuit.half_open_in_flight = max(0, circuit.half_open_in_flight - 1)
