"""Tests for melody.platform.process."""

from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

from melody.core.result import Err, Ok
from melody.platform.process import ProcessError, run


class TestRun:
    def test_success_returns_stdout(self, tmp_path: Path) -> None:
        result = run([sys.executable, "-c", "print('hello')"], cwd=tmp_path)
        assert isinstance(result, Ok)
        assert result.value.strip() == "hello"

    def test_non_zero_exit(self, tmp_path: Path) -> None:
        code = "import sys; sys.stderr.write('bad'); sys.exit(3)"
        result = run([sys.executable, "-c", code], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == 3
        assert result.error.stderr == "bad"

    def test_missing_executable(self, tmp_path: Path) -> None:
        result = run(["definitely-not-a-real-binary-xyz"], cwd=tmp_path)
        assert isinstance(result, Err)
        assert result.error.returncode == -1

    @patch("melody.platform.process.subprocess.run")
    def test_timeout(self, mock_run: MagicMock, tmp_path: Path) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd=["git"], timeout=1.0)
        result = run(["git", "fetch"], cwd=tmp_path, timeout=1.0)
        assert isinstance(result, Err)
        assert result.error.returncode == -1
        assert "timed out" in result.error.stderr


class TestProcessError:
    def test_str_truncates_long_commands(self) -> None:
        err = ProcessError(
            command=("git", "-C", "/repo", "push", "origin"),
            returncode=128,
            stdout="",
            stderr="denied",
        )
        assert str(err) == "git -C /repo ... failed (exit 128)"
