"""CLI subcommands for memhooks (config)."""

from __future__ import annotations

import click


@click.group()
def config_cmd() -> None:
    """Inspect hook configuration."""


@config_cmd.command("show")
@click.pass_context
def config_show(ctx: click.Context) -> None:
    """Show the effective configuration (file plus environment)."""
    from rich.console import Console

    from memhooks.cli.main import load_config_or_fail
    from memhooks.cli.output import print_config

    print_config(Console(), load_config_or_fail(ctx))


@config_cmd.command("check")
@click.pass_context
def config_check(ctx: click.Context) -> None:
    """Validate the configuration and exit non-zero if it is invalid."""
    from memhooks.core.config import load_hook_config
    from memhooks.hooks.errors import ConfigurationError
    from memhooks.hooks.system import HookSystem

    obj = ctx.ensure_object(dict)
    try:
        config = load_hook_config(obj.get("config_path"), cwd=obj.get("cwd"))
        HookSystem(config)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(
        f"OK: {config.hook_count} hook(s) across {len(config.hooks)} event type(s)"
    )
