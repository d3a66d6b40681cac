"""Configuration loading (TOML, env vars)."""

from __future__ import annotations

import json
import logging
import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from memhooks.hooks.errors import ConfigurationError
from memhooks.hooks.matcher import compile_matcher
from memhooks.types.config import (
    CircuitBreakerConfig,
    ExecutionConfig,
    HookConfig,
    SandboxConfig,
)
from memhooks.types.hooks import HookDefinition, OutputFormat

logger = logging.getLogger(__name__)

# Load .env from current directory (and parents), won't override existing env vars
load_dotenv()

CONFIG_DIR = ".memhooks"
CONFIG_FILE = "config.toml"


def find_config_file(cwd: str | None = None) -> Path | None:
    """Locate .memhooks/config.toml in *cwd*, the process cwd, or the home directory."""
    search_dirs: list[Path] = []
    if cwd:
        search_dirs.append(Path(cwd))
    search_dirs.append(Path.cwd())

    for d in search_dirs:
        toml_path = d / CONFIG_DIR / CONFIG_FILE
        if toml_path.exists():
            return toml_path

    home_path = Path.home() / CONFIG_DIR / CONFIG_FILE
    if home_path.exists():
        return home_path
    return None


def load_toml_config(path: str | Path | None = None, cwd: str | None = None) -> dict[str, Any]:
    """Read the TOML config. An explicit *path* must exist; otherwise search defaults."""
    if path is not None:
        toml_path = Path(path)
        if not toml_path.exists():
            raise ConfigurationError(f"Config file not found: {toml_path}")
    else:
        found = find_config_file(cwd)
        if found is None:
            return {}
        toml_path = found

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigurationError(f"Invalid TOML in {toml_path}: {exc}") from exc
    logger.debug("Loaded hook config from %s", toml_path)
    return data


def load_env_config() -> dict[str, Any]:
    """Collect hook settings from environment variables.

    The result has the same shape as the TOML config so it can be merged
    section by section.
    """
    config: dict[str, dict[str, Any]] = {"execution": {}, "circuit_breaker": {}, "sandbox": {}}

    if val := os.environ.get("HOOK_TIMEOUT"):
        config["execution"]["timeout_ms"] = _env_int("HOOK_TIMEOUT", val)
    if val := os.environ.get("HOOK_MAX_MEMORY"):
        config["execution"]["max_memory"] = val
    if val := os.environ.get("HOOK_MAX_CPU"):
        config["execution"]["max_cpu"] = _env_int("HOOK_MAX_CPU", val)

    if val := os.environ.get("CIRCUIT_FAILURE_THRESHOLD"):
        config["circuit_breaker"]["failure_threshold"] = _env_int("CIRCUIT_FAILURE_THRESHOLD", val)
    if val := os.environ.get("CIRCUIT_RESET_TIMEOUT"):
        config["circuit_breaker"]["reset_timeout_ms"] = _env_int("CIRCUIT_RESET_TIMEOUT", val)
    if val := os.environ.get("CIRCUIT_HALF_OPEN_REQUESTS"):
        config["circuit_breaker"]["half_open_requests"] = _env_int(
            "CIRCUIT_HALF_OPEN_REQUESTS", val,
        )

    if (val := os.environ.get("SANDBOX_ENABLED")) is not None:
        config["sandbox"]["enabled"] = val.strip().lower() != "false"
    if val := os.environ.get("SANDBOX_ALLOWED_COMMANDS"):
        config["sandbox"]["allowed_commands"] = [c.strip() for c in val.split(",") if c.strip()]
    if val := os.environ.get("SANDBOX_ENV"):
        try:
            env = json.loads(val)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"SANDBOX_ENV is not valid JSON: {exc}") from exc
        if not isinstance(env, dict):
            raise ConfigurationError("SANDBOX_ENV must be a JSON object")
        config["sandbox"]["env"] = env

    return {k: v for k, v in config.items() if v}


def load_hook_config(
    path: str | Path | None = None,
    *,
    cwd: str | None = None,
    use_env: bool = True,
) -> HookConfig:
    """Load the effective HookConfig: TOML file, then environment overrides."""
    data = load_toml_config(path, cwd)
    if use_env:
        for section, values in load_env_config().items():
            merged = dict(data.get(section) or {})
            merged.update(values)
            data[section] = merged
    return parse_hook_config(data)


def parse_hook_config(data: Mapping[str, Any]) -> HookConfig:
    """Build a HookConfig from a mapping (TOML or JSON shaped).

    Keys may be snake_case or camelCase. Raises ``ConfigurationError`` for
    malformed sections, values, or matcher patterns.
    """
    return HookConfig(
        hooks=_parse_hooks(data.get("hooks") or {}),
        sandbox=_parse_sandbox(_section(data, "sandbox")),
        execution=_parse_execution(_section(data, "execution")),
        circuit_breaker=_parse_circuit_breaker(
            _section(data, "circuit_breaker", "circuitBreaker"),
        ),
    )


def _section(data: Mapping[str, Any], *names: str) -> Mapping[str, Any]:
    for name in names:
        value = data.get(name)
        if value is None:
            continue
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"[{name}] must be a table")
        return value
    return {}


def _get(section: Mapping[str, Any], snake: str, default: Any = None) -> Any:
    """Look a key up by its snake_case name, then its camelCase spelling."""
    if snake in section:
        return section[snake]
    camel = re.sub(r"_([a-z])", lambda m: m.group(1).upper(), snake)
    return section.get(camel, default)


def _as_int(value: Any, name: str) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from exc


def _env_int(name: str, value: str) -> int:
    return _as_int(value.strip(), name)


def _as_bool(value: Any, name: str) -> bool:
    # Strings follow SANDBOX_ENABLED: anything but "false" enables
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() != "false"
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


def _parse_sandbox(section: Mapping[str, Any]) -> SandboxConfig:
    defaults = SandboxConfig()
    allowed = _get(section, "allowed_commands", defaults.allowed_commands)
    if isinstance(allowed, str) or not isinstance(allowed, (list, tuple)):
        raise ConfigurationError("sandbox.allowed_commands must be a list of command names")
    env = _get(section, "env", {}) or {}
    if not isinstance(env, Mapping):
        raise ConfigurationError("sandbox.env must be a table of strings")
    cwd = _get(section, "cwd")
    return SandboxConfig(
        enabled=_as_bool(_get(section, "enabled", defaults.enabled), "sandbox.enabled"),
        allowed_commands=tuple(str(c) for c in allowed),
        env={str(k): str(v) for k, v in env.items()},
        cwd=str(cwd) if cwd else None,
    )


def _parse_execution(section: Mapping[str, Any]) -> ExecutionConfig:
    defaults = ExecutionConfig()
    timeout_ms = _as_int(
        _get(section, "timeout_ms", section.get("timeout", defaults.timeout_ms)),
        "execution.timeout_ms",
    )
    if timeout_ms <= 0:
        raise ConfigurationError("execution.timeout_ms must be positive")
    return ExecutionConfig(
        timeout_ms=timeout_ms,
        max_memory=str(_get(section, "max_memory", defaults.max_memory)),
        max_cpu=_as_int(_get(section, "max_cpu", defaults.max_cpu), "execution.max_cpu"),
    )


def _parse_circuit_breaker(section: Mapping[str, Any]) -> CircuitBreakerConfig:
    # Range checks are left to CircuitBreaker so both entry points report them alike
    defaults = CircuitBreakerConfig()
    reset = _get(section, "reset_timeout_ms", section.get("resetTimeout", section.get("reset_timeout")))
    return CircuitBreakerConfig(
        failure_threshold=_as_int(
            _get(section, "failure_threshold", defaults.failure_threshold),
            "circuit_breaker.failure_threshold",
        ),
        reset_timeout_ms=_as_int(
            defaults.reset_timeout_ms if reset is None else reset,
            "circuit_breaker.reset_timeout_ms",
        ),
        half_open_requests=_as_int(
            _get(section, "half_open_requests", defaults.half_open_requests),
            "circuit_breaker.half_open_requests",
        ),
    )


def _parse_hooks(raw: Any) -> dict[str, tuple[HookDefinition, ...]]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("hooks must map event types to lists of hooks")
    hooks: dict[str, tuple[HookDefinition, ...]] = {}
    for event_type, entries in raw.items():
        if not isinstance(entries, (list, tuple)):
            raise ConfigurationError(f"hooks.{event_type} must be a list")
        hooks[str(event_type)] = tuple(
            _parse_definition(entry, f"hooks.{event_type}[{i}]")
            for i, entry in enumerate(entries)
        )
    return hooks


def _parse_definition(entry: Any, where: str) -> HookDefinition:
    if not isinstance(entry, Mapping):
        raise ConfigurationError(f"{where} must be a table")
    command = entry.get("command")
    if not isinstance(command, str) or not command.strip():
        raise ConfigurationError(f"{where}.command is required")

    matcher = entry.get("matcher")
    if matcher is not None:
        matcher = str(matcher)
        if matcher not in ("", "*"):
            try:
                compile_matcher(matcher)
            except (re.error, ValueError) as exc:
                raise ConfigurationError(f"{where}.matcher is invalid: {exc}") from exc

    raw_format = _get(entry, "output_format", OutputFormat.RAW.value)
    try:
        output_format = OutputFormat(str(raw_format).lower())
    except ValueError as exc:
        raise ConfigurationError(
            f"{where}.output_format must be 'raw' or 'json', got {raw_format!r}",
        ) from exc

    timeout_ms = _get(entry, "timeout_ms", entry.get("timeout"))
    if timeout_ms is not None:
        timeout_ms = _as_int(timeout_ms, f"{where}.timeout_ms")
        if timeout_ms <= 0:
            raise ConfigurationError(f"{where}.timeout_ms must be positive")

    hook_id = entry.get("id")
    return HookDefinition(
        command=command,
        matcher=matcher,
        id=str(hook_id) if hook_id else None,
        output_format=output_format,
        timeout_ms=timeout_ms,
    )
