"""Turn raw executor output into hook results."""

from __future__ import annotations

import json

from memhooks.sandbox.executor import ExecutionResult
from memhooks.types.hooks import HookExecutionResult, OutputFormat

CIRCUIT_OPEN_REASON = "Circuit breaker open"


def shape_result(raw: ExecutionResult, output_format: OutputFormat = OutputFormat.RAW) -> HookExecutionResult:
    """Build a HookExecutionResult from an ExecutionResult.

    For JSON hooks the output is parsed whenever the process ran to
    completion (zero or non-zero exit). A parse failure is recorded in
    ``parse_error`` and the output is kept as-is; it never raises.
    """
    parsed = None
    parse_error = None
    if output_format is OutputFormat.JSON and raw.exit_code is not None:
        try:
            parsed = json.loads(raw.stdout)
        except (ValueError, RecursionError) as exc:
            # JSONDecodeError is a ValueError; deeply nested input overflows the parser
            parse_error = str(exc)

    return HookExecutionResult(
        output=raw.stdout,
        parsed=parsed,
        parse_error=parse_error,
        error=raw.error,
        exit_code=raw.exit_code,
        timed_out=raw.timed_out,
    )


def circuit_open_result() -> HookExecutionResult:
    return HookExecutionResult.skipped_result(CIRCUIT_OPEN_REASON)


def failure_result(exc: BaseException) -> HookExecutionResult:
    """Result for an exception that escaped the executor."""
    return HookExecutionResult(error=f"Hook failed: {type(exc).__name__}: {exc}")
