"""Build the environment handed to hook subprocesses."""

from __future__ import annotations

import json
import os
import re
from collections.abc import Mapping
from typing import Any

from memhooks.types.hooks import HookEvent

# Substrings (lower-case) that mark an event data field as sensitive.
SENSITIVE_FIELDS: tuple[str, ...] = ("apikey", "password", "token", "secret", "key", "auth")

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9_]")

_DEFAULT_PATH = "/usr/local/bin:/usr/bin:/bin"


def is_sensitive(name: str) -> bool:
    """True if a field name contains one of the sensitive substrings, ignoring case."""
    lowered = name.lower()
    return any(marker in lowered for marker in SENSITIVE_FIELDS)


def scrub(value: Any) -> Any:
    """Drop sensitive keys from nested mappings and sequences."""
    if isinstance(value, Mapping):
        return {
            str(k): scrub(v) for k, v in value.items() if not is_sensitive(str(k))
        }
    if isinstance(value, (list, tuple)):
        return [scrub(v) for v in value]
    return value


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(scrub(value), default=str)


def event_variables(event: HookEvent) -> dict[str, str]:
    """Derive ``TOOL_NAME`` and ``TOOL_INPUT_<field>`` variables from an event.

    Sensitive fields are left out entirely rather than masked, so their values
    never reach the child process.
    """
    variables: dict[str, str] = {}
    if event.tool:
        variables["TOOL_NAME"] = event.tool

    for name, value in event.data.items():
        name = str(name)
        if is_sensitive(name):
            continue
        safe_name = _UNSAFE_NAME_CHARS.sub("_", name)
        variables[f"TOOL_INPUT_{safe_name}"] = _stringify(value)
    return variables


def compose_environment(
    variables: Mapping[str, str],
    base_env: Mapping[str, str] | None = None,
    *,
    inherit: Mapping[str, str] | None = None,
    strip: tuple[str, ...] = (),
) -> dict[str, str]:
    """Compose a child environment.

    Layers, later winning: *inherit* (minus *strip*), *base_env*,
    *variables*. ``PATH`` falls back to the parent's so bare command names
    resolve.
    """
    env: dict[str, str] = {}
    if inherit:
        env.update({k: v for k, v in inherit.items() if k not in strip})
    if base_env:
        env.update({str(k): str(v) for k, v in base_env.items()})
    env.update(variables)

    if not env.get("PATH"):
        env["PATH"] = os.environ.get("PATH") or _DEFAULT_PATH
    return env


def describe_environment(env: Mapping[str, str]) -> str:
    """Loggable view of an environment: names only, never values."""
    return ", ".join(sorted(env))
