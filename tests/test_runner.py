"""
Tests for run_command — subprocess is patched, nothing is executed.
"""
from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from deploykit.errors import ExternalToolFailure
from deploykit.runner import MISSING_TOOL_EXIT, CommandResult, run_command


def test_run_command_returns_structured_result(tmp_path):
    completed = subprocess.CompletedProcess(["flutter", "--version"], 0, stdout="Flutter 3.24.3\n", stderr="")
    with patch("deploykit.runner.subprocess.run", return_value=completed) as mock_run:
        result = run_command(["flutter", "--version"], cwd=tmp_path)

    assert result.ok
    assert result.stdout == "Flutter 3.24.3\n"
    args, kwargs = mock_run.call_args
    assert args[0] == ["flutter", "--version"]
    assert kwargs["cwd"] == str(tmp_path)
    assert kwargs["capture_output"] is True
    assert kwargs["env"] is None


def test_run_command_layers_env_over_inherited(monkeypatch):
    monkeypatch.setenv("PATH_MARKER", "inherited")
    completed = subprocess.CompletedProcess(["x"], 0)
    with patch("deploykit.runner.subprocess.run", return_value=completed) as mock_run:
        run_command(["x"], env={"FASTLANE_SKIP_UPDATE_CHECK": "1"})

    env = mock_run.call_args.kwargs["env"]
    assert env["FASTLANE_SKIP_UPDATE_CHECK"] == "1"
    assert env["PATH_MARKER"] == "inherited"


def test_missing_executable_is_exit_127():
    with patch("deploykit.runner.subprocess.run", side_effect=FileNotFoundError("gh")):
        result = run_command(["gh", "auth", "status"])
    assert result.returncode == MISSING_TOOL_EXIT
    assert "command not found" in result.stderr


def test_timeout_is_exit_124():
    with patch("deploykit.runner.subprocess.run",
               side_effect=subprocess.TimeoutExpired(["git", "fetch"], 5)):
        result = run_command(["git", "fetch"], timeout=5)
    assert result.returncode == 124
    assert not result.ok


def test_check_raises_with_stderr_tail():
    result = CommandResult(["fastlane", "android", "beta"], 1, stderr="Google Api Error: forbidden")
    with pytest.raises(ExternalToolFailure) as exc_info:
        result.check()
    assert exc_info.value.returncode == 1
    assert "fastlane android beta" in str(exc_info.value)
    assert "forbidden" in str(exc_info.value)


def test_check_returns_self_on_success():
    result = CommandResult(["true"], 0)
    assert result.check() is result
