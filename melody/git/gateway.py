"""Version-control boundary used by the release flows.

The flows only ever talk to ``GitGateway``; ``Repository`` is the subprocess
implementation and tests substitute recording doubles.

Two absences are tolerated by contract and come back as ``Ok`` values instead
of errors: a tag that does not exist (``tag_exists`` -> ``Ok(False)``) and a
remote branch that is already gone (``delete_remote_branch`` ->
``Ok("absent")``).
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Literal, Protocol

from melody.core.result import Result

__all__ = [
    "Commit",
    "GitError",
    "GitGateway",
    "GitStatus",
    "RemoteDeletion",
    "StatusEntry",
]

RemoteDeletion = Literal["deleted", "absent"]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git subcommand that failed (e.g. "push origin develop")
        message: Error message, usually git's stderr
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single `git status --porcelain` line."""

    xy: str
    path: str

    @property
    def is_untracked(self) -> bool:
        return self.xy == "??"


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed working tree status."""

    branch: str
    upstream: str | None = None
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        return len(self.entries) == 0

    def summary(self, limit: int = 5) -> str:
        """Short human-readable list of changed paths."""
        paths = [f"{e.xy.replace(' ', '.')} {e.path}" for e in self.entries[:limit]]
        extra = len(self.entries) - limit
        if extra > 0:
            paths.append(f"... and {extra} more")
        return ", ".join(paths)


@dataclass(frozen=True, slots=True)
class Commit:
    sha: str
    message: str

    @property
    def subject(self) -> str:
        return self.message.splitlines()[0] if self.message else ""

    @property
    def short_sha(self) -> str:
        return self.sha[:8]


class GitGateway(Protocol):
    """Operations the release flows need from version control.

    Every method is fallible and returns a Result; see module docstring for
    the two tolerated absences.
    """

    def status(self) -> Result[GitStatus, GitError]: ...

    def current_branch(self) -> Result[str, GitError]: ...

    def fetch(self) -> Result[None, GitError]: ...

    def fetch_tags(self) -> Result[None, GitError]: ...

    def list_branches(self) -> Result[tuple[str, ...], GitError]: ...

    def checkout_new(self, name: str) -> Result[None, GitError]: ...

    def checkout(self, name: str) -> Result[None, GitError]: ...

    def merge(self, branch: str) -> Result[None, GitError]: ...

    def tag(self, name: str, message: str, *, force: bool = False) -> Result[None, GitError]: ...

    def push(
        self,
        remote: str,
        ref: str,
        *,
        options: Sequence[str] = (),
        force: bool = False,
        set_upstream: bool = False,
    ) -> Result[None, GitError]: ...

    def delete_local_branch(self, name: str) -> Result[None, GitError]: ...

    def delete_remote_branch(self, remote: str, name: str) -> Result[RemoteDeletion, GitError]: ...

    def tag_exists(self, name: str) -> Result[bool, GitError]: ...

    def last_tag(self) -> Result[str | None, GitError]: ...

    def commits_since_last_tag(self) -> Result[tuple[Commit, ...], GitError]: ...
