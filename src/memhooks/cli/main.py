"""CLI entry point for memhooks."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click
from rich.console import Console
from rich.logging import RichHandler

from memhooks.core.config import load_hook_config
from memhooks.hooks.errors import ConfigurationError
from memhooks.hooks.events import build_hook_event, event_from_payload
from memhooks.hooks.matcher import match_hooks
from memhooks.hooks.system import HookSystem
from memhooks.hooks.templates import HOOK_EXECUTION_ORDER, create_template
from memhooks.types.config import HookConfig
from memhooks.types.hooks import HookEvent


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def load_config_or_fail(ctx: click.Context) -> HookConfig:
    """Load the effective config for a command, turning config errors into CLI errors."""
    obj = ctx.ensure_object(dict)
    try:
        return load_hook_config(obj.get("config_path"), cwd=obj.get("cwd"))
    except ConfigurationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc


def _parse_data(data: str | None) -> dict[str, Any]:
    if data is None:
        return {}
    if data == "-":
        data = sys.stdin.read()
    try:
        parsed = json.loads(data) if data.strip() else {}
    except json.JSONDecodeError as exc:
        raise click.BadParameter(f"not valid JSON: {exc}", param_hint="--data") from exc
    if not isinstance(parsed, dict):
        raise click.BadParameter("must be a JSON object", param_hint="--data")
    return parsed


@click.group()
@click.option(
    "--config", "-c", "config_path",
    type=click.Path(dir_okay=False), default=None,
    help="Path to a config.toml (default: .memhooks/config.toml)",
)
@click.option("--cwd", default=None, help="Directory to search for .memhooks/config.toml")
@click.option("--verbose", "-v", is_flag=True, help="Debug logging to stderr")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, cwd: str | None, verbose: bool) -> None:
    """memhooks -- run lifecycle hooks for AI coding assistants.

    \b
    Usage:
      memhooks run PreToolUse --tool Write --data '{"file_path": "a.py"}'
      memhooks match PostToolUse --tool Edit
      memhooks config show
      memhooks config check
      echo '{...}' | memhooks template user-prompt-submit-hook --json
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["cwd"] = cwd


@cli.command("run")
@click.argument("event_type")
@click.option("--tool", "-t", default=None, help="Tool name the event refers to")
@click.option("--data", "-d", default=None, help="Event data as a JSON object ('-' reads stdin)")
@click.option("--repeat", default=1, type=click.IntRange(min=1), help="Fire the event N times")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def run_cmd(
    ctx: click.Context,
    event_type: str,
    tool: str | None,
    data: str | None,
    repeat: int,
    as_json: bool,
) -> None:
    """Fire EVENT_TYPE and run every matching hook.

    Exits with status 1 if any hook failed or was skipped.
    """
    config = load_config_or_fail(ctx)
    event = build_hook_event(event_type, tool=tool, data=_parse_data(data))
    try:
        ok = asyncio.run(_run_event(config, event, repeat=repeat, as_json=as_json))
    except ConfigurationError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    if not ok:
        ctx.exit(1)


async def _run_event(config: HookConfig, event: HookEvent, *, repeat: int, as_json: bool) -> bool:
    from memhooks.cli.output import print_circuit_stats, print_execution

    console = Console()
    definitions = match_hooks(event, config.definitions_for(event.type))
    ok = True
    async with HookSystem(config) as system:
        for _ in range(repeat):
            result = await system.execute_hook(event)
            if result is not None and not result.success:
                ok = False
            if as_json:
                click.echo(json.dumps(result.to_dict() if result is not None else None))
            else:
                print_execution(console, event, result, definitions)
        if not as_json and repeat > 1:
            print_circuit_stats(console, system.circuit_breaker.get_all_stats())
    return ok


@cli.command("fire")
@click.option("--json", "as_json", is_flag=True, help="Print results as JSON")
@click.pass_context
def fire_cmd(ctx: click.Context, as_json: bool) -> None:
    """Run hooks for an event payload read from stdin.

    The payload is a JSON object with ``type``/``tool``/``data`` keys, or the
    ``hook_event_name``/``tool_name``/``tool_input`` keys assistants send.
    """
    config = load_config_or_fail(ctx)
    raw = sys.stdin.read()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Event payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise click.ClickException("Event payload must be a JSON object")
    try:
        event = event_from_payload(payload)
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if not asyncio.run(_run_event(config, event, repeat=1, as_json=as_json)):
        ctx.exit(1)


@cli.command("match")
@click.argument("event_type")
@click.option("--tool", "-t", default=None, help="Tool name the event refers to")
@click.pass_context
def match_cmd(ctx: click.Context, event_type: str, tool: str | None) -> None:
    """List the hooks EVENT_TYPE would run, without running them."""
    from memhooks.cli.output import print_matches

    config = load_config_or_fail(ctx)
    event = build_hook_event(event_type, tool=tool)
    print_matches(Console(), event, match_hooks(event, config.definitions_for(event_type)))


@cli.command("template")
@click.argument("template_type", type=click.Choice([t.value for t in HOOK_EXECUTION_ORDER]))
@click.option("--json", "as_json", is_flag=True, help="Print the response as JSON")
def template_cmd(template_type: str, as_json: bool) -> None:
    """Run a memory hook template on an event read from stdin.

    The event is a JSON object with ``type``, ``timestamp`` and ``data`` keys
    and an optional ``context``. Exits 1 when the template reports a failure.
    """
    from memhooks.cli.output import print_template_response

    raw = sys.stdin.read()
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Event payload is not valid JSON: {exc}") from exc
    response = create_template(template_type).process(payload)
    if as_json:
        click.echo(json.dumps(response.to_dict()))
    else:
        print_template_response(Console(), response)
    if not response.success:
        raise SystemExit(1)

def _register_subcommands() -> None:
    """Register CLI subcommands."""
    from memhooks.cli.commands import config_cmd

    cli.add_command(config_cmd, "config")


_register_subcommands()


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
