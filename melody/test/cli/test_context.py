"""Tests for wiring the CLI collaborators."""

from __future__ import annotations

from pathlib import Path

import pytest

from melody.cli.context import build_context, load_environment


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch) -> pytest.MonkeyPatch:
    monkeypatch.delenv("GITLAB_HOST", raising=False)
    monkeypatch.delenv("GITLAB_ACCESS_TOKEN", raising=False)
    return monkeypatch


class TestLoadEnvironment:
    def test_without_env_file(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        env = load_environment(tmp_path)
        assert "GITLAB_ACCESS_TOKEN" not in env

    def test_reads_env_file(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text(
            "GITLAB_ACCESS_TOKEN=fromfile\nGITLAB_HOST=https://git.example.com\n",
            encoding="utf-8",
        )
        env = load_environment(tmp_path)
        assert env["GITLAB_ACCESS_TOKEN"] == "fromfile"
        assert env["GITLAB_HOST"] == "https://git.example.com"

    def test_process_environment_wins(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("GITLAB_ACCESS_TOKEN=fromfile\n", encoding="utf-8")
        clean_env.setenv("GITLAB_ACCESS_TOKEN", "fromshell")
        assert load_environment(tmp_path)["GITLAB_ACCESS_TOKEN"] == "fromshell"


class TestBuildContext:
    def test_token_from_env_file(self, tmp_path: Path, clean_env: pytest.MonkeyPatch) -> None:
        (tmp_path / ".env").write_text("GITLAB_ACCESS_TOKEN=fromfile\n", encoding="utf-8")
        ctx = build_context(tmp_path)
        assert ctx.services.config.gitlab.token == "fromfile"

    def test_explicit_env_skips_env_file(
        self, tmp_path: Path, clean_env: pytest.MonkeyPatch
    ) -> None:
        (tmp_path / ".env").write_text("GITLAB_ACCESS_TOKEN=fromfile\n", encoding="utf-8")
        ctx = build_context(tmp_path, env={})
        assert ctx.services.config.gitlab.token is None
