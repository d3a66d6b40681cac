"""Tests for result shaping and result types."""

from __future__ import annotations

from memhooks.hooks.results import (
    CIRCUIT_OPEN_REASON,
    circuit_open_result,
    failure_result,
    shape_result,
)
from memhooks.sandbox.executor import ExecutionResult
from memhooks.types.hooks import AggregateResult, HookExecutionResult, OutputFormat


class TestShapeResult:
    def test_raw_passthrough(self):
        result = shape_result(ExecutionResult(stdout="hello\n", exit_code=0))
        assert result.output == "hello\n"
        assert result.exit_code == 0
        assert result.parsed is None
        assert result.parse_error is None
        assert result.success

    def test_json_parsed(self):
        raw = ExecutionResult(stdout='{"result": "success", "value": 42}\n', exit_code=0)
        result = shape_result(raw, OutputFormat.JSON)
        assert result.parsed == {"result": "success", "value": 42}
        assert result.parse_error is None
        assert result.output == raw.stdout

    def test_json_parse_failure_keeps_output(self):
        result = shape_result(ExecutionResult(stdout="not json\n", exit_code=0), OutputFormat.JSON)
        assert result.parsed is None
        assert result.parse_error
        assert result.output == "not json\n"
        # A parse failure is not an execution failure
        assert result.error is None
        assert result.success

    def test_deeply_nested_json_is_a_parse_error(self):
        stdout = "[" * 200_000
        result = shape_result(ExecutionResult(stdout=stdout, exit_code=0), OutputFormat.JSON)
        assert result.parsed is None
        assert result.parse_error
        assert result.output == stdout
        assert result.error is None

    def test_json_parsed_on_non_zero_exit(self):
        raw = ExecutionResult(
            stdout='{"blocked": true}', exit_code=2, error="Command exited with code 2",
        )
        result = shape_result(raw, OutputFormat.JSON)
        assert result.parsed == {"blocked": True}
        assert result.exit_code == 2
        assert not result.success

    def test_json_not_parsed_when_process_never_ran(self):
        raw = ExecutionResult(error="Command not allowed: rm")
        result = shape_result(raw, OutputFormat.JSON)
        assert result.parsed is None
        assert result.parse_error is None
        assert result.error == "Command not allowed: rm"

    def test_timeout_flag(self):
        raw = ExecutionResult(timed_out=True, error="Command timed out after 100ms")
        assert shape_result(raw).timed_out


class TestHelpers:
    def test_circuit_open_result(self):
        result = circuit_open_result()
        assert result.skipped
        assert result.reason == CIRCUIT_OPEN_REASON == "Circuit breaker open"
        assert not result.success

    def test_failure_result(self):
        result = failure_result(RuntimeError("spawn exploded"))
        assert result.error == "Hook failed: RuntimeError: spawn exploded"


class TestSerialization:
    def test_to_dict_omits_absent_fields(self):
        assert HookExecutionResult(output="x\n", exit_code=0).to_dict() == {
            "output": "x\n",
            "exit_code": 0,
        }

    def test_to_dict_skipped(self):
        assert circuit_open_result().to_dict() == {
            "skipped": True,
            "reason": "Circuit breaker open",
        }

    def test_to_dict_error(self):
        data = HookExecutionResult(error="boom", timed_out=True).to_dict()
        assert data == {"output": "", "error": "boom", "timed_out": True}

    def test_aggregate(self):
        agg = AggregateResult(results=(
            HookExecutionResult(output="a"),
            HookExecutionResult.skipped_result("Circuit breaker open"),
        ))
        assert not agg.success
        assert agg.to_dict()["results"][1]["skipped"] is True
