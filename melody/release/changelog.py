"""Changelog generation and lookup.

``GitChangelog`` renders the commits since the last tag as a release section
grouped by conventional-commit type, in the layout of the angular preset:

    ## 1.3.0 (2026-10-16)

    ### Features

    * **cli:** add --dry-run (1a2b3c4d)

    ### Bug Fixes

    * handle detached HEAD (5e6f7a8b)
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Protocol

from melody.core.result import Err, Ok, Result
from melody.git.gateway import Commit, GitGateway
from melody.platform.files import atomic_write_text
from melody.release.errors import ReleaseError
from melody.release.resolver import classify
from melody.release.semver import Version

_SECTIONS: tuple[tuple[str, str], ...] = (
    ("feat", "Features"),
    ("fix", "Bug Fixes"),
    ("perf", "Performance Improvements"),
    ("revert", "Reverts"),
)

_RELEASE_HEADING_RE = re.compile(r"^#{1,3} \[?v?\d+\.\d+\.\d+")
_SUBJECT_RE = re.compile(r"^[a-zA-Z]+(?:\([^)]*\))?!?: ")

# New sections are separated from the previous content by blank lines.
SECTION_SEPARATOR = "\n\n\n"


class ChangelogGenerator(Protocol):
    def generate(self, version: Version) -> Result[str, ReleaseError]: ...

    def get_latest(self, include_header: bool) -> Result[str, ReleaseError]: ...


@dataclass(frozen=True, slots=True)
class GitChangelog:
    """Changelog backed by the git history and the changelog file on disk."""

    git: GitGateway
    path: Path
    today: Callable[[], date] = date.today

    def generate(self, version: Version) -> Result[str, ReleaseError]:
        commits = self.git.commits_since_last_tag()
        if isinstance(commits, Err):
            return Err(
                ReleaseError(
                    kind="external_command",
                    message="failed to read commits for the changelog",
                    hint=commits.error.message,
                )
            )
        return Ok(render_section(version, commits.value, self.today()))

    def get_latest(self, include_header: bool) -> Result[str, ReleaseError]:
        existing = read_changelog(self.path)
        if isinstance(existing, Err):
            return existing
        return Ok(latest_section(existing.value, include_header=include_header))


def render_section(version: Version, commits: tuple[Commit, ...], day: date) -> str:
    grouped: dict[str, list[str]] = {kind: [] for kind, _ in _SECTIONS}
    breaking: list[str] = []

    for commit in commits:
        info = classify(commit.message)
        line = _entry(commit, info.scope)
        if info.type in grouped:
            grouped[info.type].append(line)
        if info.breaking:
            breaking.append(line)

    lines = [f"## {version} ({day.isoformat()})", ""]
    for kind, title in _SECTIONS:
        if not grouped[kind]:
            continue
        lines.extend([f"### {title}", "", *grouped[kind], ""])
    if breaking:
        lines.extend(["### BREAKING CHANGES", "", *breaking, ""])

    return "\n".join(lines).rstrip() + "\n"


def _entry(commit: Commit, scope: str | None) -> str:
    subject = _SUBJECT_RE.sub("", commit.subject, count=1)
    prefix = f"**{scope}:** " if scope else ""
    return f"* {prefix}{subject} ({commit.short_sha})"


def read_changelog(path: Path) -> Result[str, ReleaseError]:
    """Read the changelog; a missing file reads as empty."""
    try:
        return Ok(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Ok("")
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(
                kind="io",
                message=f"failed to read {path.name}: {e}",
                hint=str(path),
            )
        )


def prepend_section(existing: str, section: str) -> str:
    if not existing.strip():
        return section
    return section.rstrip("\n") + SECTION_SEPARATOR + existing


def latest_section(text: str, *, include_header: bool) -> str:
    """Extract the most recent release section of a changelog.

    Falls back to the whole text when no release heading is found.
    """
    lines = text.splitlines()
    start: int | None = None
    end = len(lines)
    for i, line in enumerate(lines):
        if not _RELEASE_HEADING_RE.match(line):
            continue
        if start is None:
            start = i
        else:
            end = i
            break

    if start is None:
        return text.strip()

    body_start = start if include_header else start + 1
    return "\n".join(lines[body_start:end]).strip()


def write_changelog(path: Path, content: str) -> Result[None, ReleaseError]:
    try:
        atomic_write_text(path, content, encoding="utf-8")
    except OSError as e:
        return Err(
            ReleaseError(
                kind="io",
                message=f"failed to write {path.name}: {e}",
                hint=str(path),
            )
        )
    return Ok(None)
