"""Tests for melody.release.changelog."""

from __future__ import annotations

from datetime import date
from pathlib import Path

from melody.core.result import Err, Ok
from melody.git.gateway import Commit, GitError
from melody.release.changelog import (
    GitChangelog,
    latest_section,
    prepend_section,
    read_changelog,
    render_section,
)
from melody.release.semver import Version

from ._fakes import FakeGit

DAY = date(2026, 10, 16)

EXISTING = """# Changelog

## 1.2.0 (2026-09-01)

### Features

* first feature (aaaaaaaa)


## 1.1.0 (2026-08-01)

* older
"""


def _commit(message: str, sha: str) -> Commit:
    return Commit(sha=sha * 10, message=message)


class TestRenderSection:
    def test_groups_by_type(self) -> None:
        commits = (
            _commit("feat(cli): add --dry-run", "1a2b"),
            _commit("fix: handle detached HEAD", "5e6f"),
            _commit("chore: bump deps", "9999"),
            _commit("perf: faster status", "abcd"),
        )

        text = render_section(Version(1, 3, 0), commits, DAY)

        assert text == (
            "## 1.3.0 (2026-10-16)\n"
            "\n"
            "### Features\n"
            "\n"
            "* **cli:** add --dry-run (1a2b1a2b)\n"
            "\n"
            "### Bug Fixes\n"
            "\n"
            "* handle detached HEAD (5e6f5e6f)\n"
            "\n"
            "### Performance Improvements\n"
            "\n"
            "* faster status (abcdabcd)\n"
        )

    def test_breaking_changes_section(self) -> None:
        commits = (_commit("feat!: drop node 16", "dead"),)

        text = render_section(Version(2, 0, 0), commits, DAY)

        assert "### BREAKING CHANGES\n\n* drop node 16 (deaddead)" in text

    def test_no_relevant_commits(self) -> None:
        text = render_section(Version(1, 2, 4), (_commit("chore: x", "0000"),), DAY)
        assert text == "## 1.2.4 (2026-10-16)\n"


class TestFileHelpers:
    def test_missing_changelog_reads_empty(self, tmp_path: Path) -> None:
        assert read_changelog(tmp_path / "CHANGELOG.md") == Ok("")

    def test_changelog_not_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_bytes(b"## 1.0.0\n\n* caf\xff\n")
        result = read_changelog(path)
        assert isinstance(result, Err)
        assert result.error.kind == "io"

    def test_prepend_to_empty(self) -> None:
        assert prepend_section("", "## 1.0.0\n") == "## 1.0.0\n"

    def test_prepend_separates_with_blank_lines(self) -> None:
        assert prepend_section("old\n", "## 1.0.0\n") == "## 1.0.0\n\n\nold\n"

    def test_latest_section_without_header(self) -> None:
        assert latest_section(EXISTING, include_header=False) == (
            "### Features\n\n* first feature (aaaaaaaa)"
        )

    def test_latest_section_with_header(self) -> None:
        text = latest_section(EXISTING, include_header=True)
        assert text.startswith("## 1.2.0 (2026-09-01)")
        assert "1.1.0" not in text

    def test_latest_section_without_release_heading(self) -> None:
        assert latest_section("  just notes \n", include_header=False) == "just notes"


class TestGitChangelog:
    def test_generate(self, tmp_path: Path) -> None:
        git = FakeGit(commits=(_commit("feat: new thing", "beef"),))
        changelog = GitChangelog(git=git, path=tmp_path / "CHANGELOG.md", today=lambda: DAY)

        result = changelog.generate(Version(1, 3, 0))

        assert isinstance(result, Ok)
        assert result.value.startswith("## 1.3.0 (2026-10-16)")
        assert "* new thing (beefbeef)" in result.value

    def test_generate_history_failure(self, tmp_path: Path) -> None:
        git = FakeGit(failures={"commits_since_last_tag": GitError("log", "fatal: bad object")})
        changelog = GitChangelog(git=git, path=tmp_path / "CHANGELOG.md")

        result = changelog.generate(Version(1, 3, 0))

        assert isinstance(result, Err)
        assert result.error.kind == "external_command"

    def test_get_latest(self, tmp_path: Path) -> None:
        path = tmp_path / "CHANGELOG.md"
        path.write_text(EXISTING, encoding="utf-8")
        changelog = GitChangelog(git=FakeGit(), path=path)

        assert changelog.get_latest(False) == Ok("### Features\n\n* first feature (aaaaaaaa)")
