"""Tests for shellbridge.cli."""

from __future__ import annotations

import os
from pathlib import Path

import pytest
from typer.testing import CliRunner

from shellbridge.cli import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in ("SHELLBRIDGE_CWD", "SHELLBRIDGE_ENV", "SHELLBRIDGE_VERBOSE"):
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)


class TestKeysCommand:
    def test_lists_table(self) -> None:
        result = runner.invoke(app, ["keys"])
        assert result.exit_code == 0
        assert "120x30" in result.output
        assert "up" in result.output
        assert "\\x1b[A" in result.output
        assert "f12" in result.output


class TestRunCommand:
    def test_bad_env_value(self) -> None:
        result = runner.invoke(app, ["run", "--env", "NOEQUALS", "ls"])
        assert result.exit_code == 1

    @pytest.mark.skipif(os.name == "nt", reason="requires POSIX PTYs")
    def test_launch_failure_exits_1(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["run", "--cwd", str(tmp_path / "missing"), "ls"])
        assert result.exit_code == 1

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "run" in result.output
