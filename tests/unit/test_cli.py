"""Tests for the memhooks CLI."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from memhooks.cli.main import cli

CONFIG = """
[sandbox]
allowed_commands = ["echo", "sh"]
env = { API_TOKEN = "abc123", MEMORY_URL = "http://m" }

[circuit_breaker]
failure_threshold = 2

[[hooks.PreToolUse]]
matcher = "^(Write|Edit)$"
command = "echo hello"

[[hooks.PostToolUse]]
command = "sh -c 'exit 2'"
id = "broken"
"""


@pytest.fixture
def config_path(tmp_path: Path) -> str:
    path = tmp_path / "config.toml"
    path.write_text(CONFIG)
    return str(path)


class TestRunCommand:
    def test_run_json(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "run", "PreToolUse", "--tool", "Write", "--json"])
        assert result.exit_code == 0
        assert json.loads(result.stdout) == {"output": "hello\n", "exit_code": 0}

    def test_run_pretty(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "run", "PreToolUse", "-t", "Edit"])
        assert result.exit_code == 0
        assert "hello" in result.stdout

    def test_run_no_match(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "run", "PreToolUse", "-t", "Read"])
        assert result.exit_code == 0
        assert "No hooks matched" in result.stdout

    def test_run_failure_exits_1(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "run", "PostToolUse", "--json"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["exit_code"] == 2

    def test_run_repeat_opens_circuit(self, config_path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["--config", config_path, "run", "PostToolUse", "--repeat", "3", "--json"],
        )
        assert result.exit_code == 1
        lines = [json.loads(line) for line in result.stdout.splitlines()]
        assert lines[2] == {"skipped": True, "reason": "Circuit breaker open"}

    def test_run_with_data(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[sandbox]\nallowed_commands = ["sh"]\n'
            '[[hooks.PreToolUse]]\ncommand = "sh -c \'echo $TOOL_INPUT_file_path\'"\n'
        )
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["--config", str(path), "run", "PreToolUse", "--data", '{"file_path": "a.py"}', "--json"],
        )
        assert result.exit_code == 0
        assert json.loads(result.stdout)["output"] == "a.py\n"

    def test_run_invalid_data(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "run", "PreToolUse", "--data", "{nope"])
        assert result.exit_code == 2

    def test_run_missing_config(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.toml"), "run", "PreToolUse"])
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestFireCommand:
    def test_fire_reads_payload(self, config_path):
        payload = {"hook_event_name": "PreToolUse", "tool_name": "Write", "tool_input": {}}
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "fire", "--json"], input=json.dumps(payload))
        assert result.exit_code == 0
        assert json.loads(result.stdout)["output"] == "hello\n"

    def test_fire_invalid_payload(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "fire"], input="not json")
        assert result.exit_code == 1


class TestMatchCommand:
    def test_match_lists_hooks(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "match", "PreToolUse", "-t", "Write"])
        assert result.exit_code == 0
        assert "Hooks for PreToolUse" in result.stdout
        assert "hello" in result.stdout

    def test_match_none(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "match", "PreToolUse", "-t", "Bash"])
        assert result.exit_code == 0
        assert "No hooks match" in result.stdout


class TestConfigCommand:
    def test_config_show_masks_secrets(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "config", "show"])
        assert result.exit_code == 0
        assert "circuit_breaker.failure_threshold" in result.stdout
        assert "abc123" not in result.stdout
        assert "API_TOKEN=***" in result.stdout

    def test_config_check_ok(self, config_path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", config_path, "config", "check"])
        assert result.exit_code == 0
        assert "OK: 2 hook(s) across 2 event type(s)" in result.stdout

    def test_config_check_invalid(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[circuit_breaker]\nfailure_threshold = 0\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(path), "config", "check"])
        assert result.exit_code == 1
        assert "at least 1" in result.output


def _template_event(prompt):
    return json.dumps({
        "type": "UserPromptSubmit",
        "timestamp": "2024-05-01T12:00:00Z",
        "data": {"prompt": prompt, "timestamp": "2024-05-01T12:00:00Z"},
        "context": {"workspacePath": "/w"},
    })


class TestTemplateCommand:
    def test_template_json(self):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["template", "user-prompt-submit-hook", "--json"], input=_template_event("Explain the parser"),
        )
        assert result.exit_code == 0
        out = json.loads(result.stdout)
        assert out["success"] is True
        assert out["data"]["content"] == "Explain the parser"
        assert out["metadata"]["workspace_id"] == "/w"

    def test_template_failure_exits_1(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["template", "user-prompt-submit-hook", "--json"], input=_template_event(" "))
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"]["code"] == "EMPTY_PROMPT"

    def test_template_pretty_failure(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["template", "user-prompt-submit-hook"], input=_template_event(""))
        assert result.exit_code == 1
        assert "EMPTY_PROMPT" in result.stdout

    def test_template_unknown_type(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["template", "nope"], input="{}")
        assert result.exit_code == 2

    def test_template_invalid_json(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["template", "user-prompt-assistant-message-hook"], input="not json")
        assert result.exit_code == 1
        assert "not valid JSON" in result.output
