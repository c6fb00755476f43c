"""Tests for the `omnitea` CLI commands."""

from __future__ import annotations

import json
import os
import subprocess
import sys

import pytest

from omnitea.config import ENV_OVERRIDES


@pytest.fixture()
def tmp_cwd(tmp_path, monkeypatch):
    """Run test in a clean temporary directory."""
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _run_cli(*args: str) -> subprocess.CompletedProcess:
    env = {k: v for k, v in os.environ.items() if k not in ENV_OVERRIDES}
    return subprocess.run(
        [sys.executable, "-m", "omnitea.cli.main", *args],
        capture_output=True,
        text=True,
        env=env,
    )


HISTORY = [
    {"author": "alice", "content": "old topic"},
    {"author": "alice", "content": "|b| be terse"},
    {"author": "bob", "content": "hi"},
    {"self": True, "content": "hello bob"},
    {"author": "bob", "content": "how are you"},
]


def test_assemble_json(tmp_cwd):
    (tmp_cwd / "history.json").write_text(json.dumps(HISTORY))
    result = _run_cli("--log-level", "ERROR", "assemble", "history.json", "--json")
    assert result.returncode == 0, result.stderr
    window = json.loads(result.stdout)
    assert window["messages"] == [
        {"role": "system", "content": "be terse"},
        {"role": "user", "content": "bob says: hi"},
        {"role": "assistant", "content": "hello bob"},
        {"role": "user", "content": "bob says: how are you"},
    ]
    assert window["barrier_found"] is True
    assert window["pages_fetched"] == 1
    assert window["token_count"] > 0


def test_assemble_text_report(tmp_cwd):
    (tmp_cwd / "history.json").write_text(json.dumps(HISTORY[2:]))
    result = _run_cli("--log-level", "ERROR", "assemble", "history.json")
    assert result.returncode == 0, result.stderr
    assert "Budget:   3,596 tokens" in result.stdout
    assert "Messages: 3 of 3" in result.stdout
    assert "Barrier:  no" in result.stdout
    assert "[user] bob says: how are you" in result.stdout


def test_assemble_empty_history(tmp_cwd):
    (tmp_cwd / "history.json").write_text("[]")
    result = _run_cli("--log-level", "ERROR", "assemble", "history.json")
    assert result.returncode != 0
    assert "non-empty JSON list" in result.stderr


def test_debug_logs_go_to_stderr(tmp_cwd):
    (tmp_cwd / "history.json").write_text(json.dumps(HISTORY))
    result = _run_cli("--log-level", "DEBUG", "assemble", "history.json", "--json")
    assert result.returncode == 0, result.stderr
    json.loads(result.stdout)
    assert "[omnitea.core.assembler][DEBUG] Barrier found" in result.stderr


def test_render_plain_text(tmp_cwd):
    result = _run_cli("--log-level", "ERROR", "render", "no math here")
    assert result.returncode == 0, result.stderr
    assert result.stdout.splitlines() == ["--- 1: text ---", "no math here"]


def test_config_validate_defaults(tmp_cwd):
    result = _run_cli("config", "validate")
    assert result.returncode == 0
    assert "Config is valid." in result.stdout
    assert "Token budget:  3,596" in result.stdout


def test_config_validate_reports_errors(tmp_cwd):
    (tmp_cwd / "omnitea.yaml").write_text("renderer:\n  strategy: svg\n")
    result = _run_cli("config", "validate")
    assert result.returncode == 1
    assert "Unknown renderer strategy: svg" in result.stdout


def test_chat_requires_api_key(tmp_cwd):
    result = _run_cli("--log-level", "ERROR", "chat")
    assert result.returncode == 1
    assert "No completion API key" in result.stderr


def test_no_command_prints_help(tmp_cwd):
    result = _run_cli()
    assert result.returncode == 1
    assert "usage: omnitea" in result.stdout
