"""Rich-powered terminal output for the memhooks CLI."""

from __future__ import annotations

import json
from collections.abc import Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from memhooks.hooks.circuit_breaker import CircuitStats
from memhooks.hooks.templates import TemplateResponse
from memhooks.sandbox.environment import is_sensitive
from memhooks.types.config import HookConfig
from memhooks.types.hooks import (
    AggregateResult,
    HookDefinition,
    HookEvent,
    HookExecutionResult,
)

STYLE_LABEL = "bold #94a3b8"
STYLE_VALUE = "#e2e8f0"
STYLE_OK = "bold #34d399"
STYLE_ERROR = "bold #f87171"
STYLE_SKIPPED = "bold #fbbf24"
STYLE_DIM = "dim #7c7c8a"

_MAX_OUTPUT_CHARS = 2000


def _status(result: HookExecutionResult) -> Text:
    if result.skipped:
        return Text("skipped", style=STYLE_SKIPPED)
    if result.timed_out:
        return Text("timed out", style=STYLE_ERROR)
    if result.error is not None:
        return Text("failed", style=STYLE_ERROR)
    return Text("ok", style=STYLE_OK)


def _result_table(result: HookExecutionResult) -> Table:
    tbl = Table(show_header=False, show_edge=False, padding=(0, 1), expand=False)
    tbl.add_column(style=STYLE_LABEL, justify="right", no_wrap=True)
    tbl.add_column(style=STYLE_VALUE)

    tbl.add_row("Status", _status(result))
    if result.skipped:
        tbl.add_row("Reason", result.reason or "")
        return tbl
    if result.exit_code is not None:
        tbl.add_row("Exit code", str(result.exit_code))
    if result.error:
        tbl.add_row("Error", Text(result.error, style=STYLE_ERROR))
    if result.parse_error:
        tbl.add_row("Parse error", Text(result.parse_error, style=STYLE_ERROR))
    elif result.parsed is not None:
        tbl.add_row("Parsed", json.dumps(result.parsed, indent=2))
    output = result.output.rstrip("\n")
    if len(output) > _MAX_OUTPUT_CHARS:
        output = output[:_MAX_OUTPUT_CHARS] + "…"
    tbl.add_row("Output", Text(output) if output else Text("(empty)", style=STYLE_DIM))
    return tbl


def print_execution(
    console: Console,
    event: HookEvent,
    result: HookExecutionResult | AggregateResult | None,
    definitions: Sequence[HookDefinition] = (),
) -> None:
    """Print the outcome of one execute_hook call."""
    subject = f"{event.type}" + (f" ({event.tool})" if event.tool else "")
    if result is None:
        console.print(Text(f"No hooks matched {subject}", style=STYLE_DIM))
        return

    results = result.results if isinstance(result, AggregateResult) else (result,)
    for i, item in enumerate(results):
        title = definitions[i].key if i < len(definitions) else f"hook {i + 1}"
        console.print(Panel(
            _result_table(item),
            title=Text(title, style=STYLE_LABEL),
            subtitle=Text(subject, style=STYLE_DIM),
            border_style="#3f3f50",
            expand=False,
            padding=(0, 1),
        ))


def print_matches(console: Console, event: HookEvent, definitions: Sequence[HookDefinition]) -> None:
    """Print the definitions that would run for an event."""
    if not definitions:
        console.print(Text(f"No hooks match {event.type}", style=STYLE_DIM))
        return
    tbl = Table(title=f"Hooks for {event.type}", expand=False)
    tbl.add_column("#", justify="right", style=STYLE_DIM)
    tbl.add_column("Key", style=STYLE_LABEL)
    tbl.add_column("Matcher")
    tbl.add_column("Command", style=STYLE_VALUE)
    tbl.add_column("Format")
    tbl.add_column("Timeout")
    for i, d in enumerate(definitions, start=1):
        tbl.add_row(
            str(i),
            d.key,
            d.matcher or "*",
            d.command,
            d.output_format.value,
            f"{d.timeout_ms}ms" if d.timeout_ms else "default",
        )
    console.print(tbl)


def print_config(console: Console, config: HookConfig) -> None:
    """Print the effective configuration. Sensitive sandbox env values are masked."""
    tbl = Table(show_header=False, expand=False)
    tbl.add_column(style=STYLE_LABEL, no_wrap=True)
    tbl.add_column(style=STYLE_VALUE)

    sandbox = config.sandbox
    tbl.add_row("sandbox.enabled", str(sandbox.enabled).lower())
    tbl.add_row("sandbox.allowed_commands", ", ".join(sandbox.allowed_commands) or "(none)")
    env_display = ", ".join(
        f"{k}={'***' if is_sensitive(k) else v}" for k, v in sorted(sandbox.env.items())
    )
    tbl.add_row("sandbox.env", env_display or "(none)")
    tbl.add_row("execution.timeout_ms", str(config.execution.timeout_ms))
    tbl.add_row("execution.max_memory", config.execution.max_memory)
    tbl.add_row("execution.max_cpu", str(config.execution.max_cpu))
    cb = config.circuit_breaker
    tbl.add_row("circuit_breaker.failure_threshold", str(cb.failure_threshold))
    tbl.add_row("circuit_breaker.reset_timeout_ms", str(cb.reset_timeout_ms))
    tbl.add_row("circuit_breaker.half_open_requests", str(cb.half_open_requests))
    for event_type, defs in sorted(config.hooks.items()):
        tbl.add_row(f"hooks.{event_type}", f"{len(defs)} hook(s)")
    console.print(tbl)


def print_circuit_stats(console: Console, stats: dict[str, CircuitStats]) -> None:
    if not stats:
        return
    tbl = Table(title="Circuits", expand=False)
    tbl.add_column("Key", style=STYLE_LABEL)
    tbl.add_column("State")
    tbl.add_column("Failures", justify="right")
    tbl.add_column("Successes", justify="right")
    tbl.add_column("Requests", justify="right")
    for key, s in sorted(stats.items()):
        tbl.add_row(key, s.state.value, str(s.failures), str(s.successes), str(s.total_requests))
    console.print(tbl)


def print_template_response(console: Console, response: TemplateResponse) -> None:
    """Print a template's response: the data on success, the coded error otherwise."""
    tbl = Table(show_header=False, show_edge=False, padding=(0, 1), expand=False)
    tbl.add_column(style=STYLE_LABEL, justify="right", no_wrap=True)
    tbl.add_column(style=STYLE_VALUE)

    if response.success:
        tbl.add_row("Status", Text("ok", style=STYLE_OK))
        tbl.add_row("Data", json.dumps(response.data, indent=2))
    elif response.error is not None:
        tbl.add_row("Status", Text("failed", style=STYLE_ERROR))
        tbl.add_row("Code", Text(response.error.code, style=STYLE_ERROR))
        tbl.add_row("Message", response.error.message)
    tbl.add_row("Time", f"{response.metadata.execution_time_ms}ms")
    console.print(Panel(
        tbl,
        title=Text(response.metadata.hook_id, style=STYLE_LABEL),
        border_style="#3f3f50",
        expand=False,
        padding=(0, 1),
    ))
