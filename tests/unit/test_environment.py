"""Tests for hook subprocess environment construction."""

from __future__ import annotations

import json

import pytest

from memhooks.hooks.events import build_hook_event
from memhooks.sandbox.environment import (
    compose_environment,
    describe_environment,
    event_variables,
    is_sensitive,
    scrub,
)


class TestSensitiveFields:
    @pytest.mark.parametrize("name", [
        "api_key", "apiKey", "APIKEY", "password", "db_password", "token",
        "refresh_token", "client_secret", "ssh_key", "Authorization", "auth",
    ])
    def test_sensitive(self, name: str):
        assert is_sensitive(name)

    @pytest.mark.parametrize("name", ["endpoint", "file_path", "content", "command"])
    def test_not_sensitive(self, name: str):
        assert not is_sensitive(name)

    def test_scrub_nested(self):
        value = {"a": 1, "password": "x", "inner": {"token": "t", "keep": [{"secret": 1, "ok": 2}]}}
        assert scrub(value) == {"a": 1, "inner": {"keep": [{"ok": 2}]}}


class TestEventVariables:
    def test_tool_name_and_inputs(self):
        event = build_hook_event("PreToolUse", tool="Write", data={"file_path": "a.py", "content": "x"})
        env = event_variables(event)
        assert env == {
            "TOOL_NAME": "Write",
            "TOOL_INPUT_file_path": "a.py",
            "TOOL_INPUT_content": "x",
        }

    def test_no_tool(self):
        env = event_variables(build_hook_event("SessionStart"))
        assert "TOOL_NAME" not in env

    def test_sensitive_fields_omitted(self):
        event = build_hook_event(
            "PreToolUse",
            tool="Write",
            data={"api_key": "secret123", "endpoint": "https://example.com"},
        )
        env = event_variables(event)
        assert "TOOL_INPUT_api_key" not in env
        assert "secret123" not in "".join(env.values())
        assert env["TOOL_INPUT_endpoint"] == "https://example.com"

    def test_nested_values_are_json(self):
        event = build_hook_event(
            "PostToolUse",
            data={"options": {"recursive": True, "auth_token": "t0k"}, "paths": ["a", "b"]},
        )
        env = event_variables(event)
        assert json.loads(env["TOOL_INPUT_options"]) == {"recursive": True}
        assert json.loads(env["TOOL_INPUT_paths"]) == ["a", "b"]

    def test_scalars_are_stringified(self):
        event = build_hook_event("Message", data={"count": 3, "ratio": 0.5, "done": False, "none": None})
        env = event_variables(event)
        assert env["TOOL_INPUT_count"] == "3"
        assert env["TOOL_INPUT_ratio"] == "0.5"
        assert env["TOOL_INPUT_done"] == "false"
        assert env["TOOL_INPUT_none"] == ""

    def test_field_names_sanitized(self):
        env = event_variables(build_hook_event("Message", data={"file-path.v2": "x"}))
        assert env == {"TOOL_INPUT_file_path_v2": "x"}


class TestComposeEnvironment:
    def test_layers(self):
        env = compose_environment(
            {"TOOL_NAME": "Edit"},
            {"TOOL_NAME": "base", "MEMORY_URL": "u", "PATH": "/opt/bin"},
        )
        assert env == {"TOOL_NAME": "Edit", "MEMORY_URL": "u", "PATH": "/opt/bin"}

    def test_path_fallback(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("PATH", "/custom/bin")
        assert compose_environment({})["PATH"] == "/custom/bin"

    def test_inherit_strips(self):
        env = compose_environment(
            {},
            inherit={"HOME": "/home/u", "OPENAI_API_KEY": "sk", "PATH": "/bin"},
            strip=("OPENAI_API_KEY",),
        )
        assert env == {"HOME": "/home/u", "PATH": "/bin"}

    def test_describe_lists_names_only(self):
        text = describe_environment({"B": "secret-value", "A": "x"})
        assert text == "A, B"
