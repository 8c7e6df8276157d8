"""Subprocess implementation of the git gateway.

Usage:
    repo = Repository(Path("."))

    match repo.status():
        case Ok(status) if status.is_clean:
            ...
        case Ok(status):
            print(status.summary())
        case Err(e):
            print(f"{e.command}: {e.message}")
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from melody.core.result import Err, Ok, Result
from melody.git.gateway import (
    Commit,
    GitError,
    GitStatus,
    RemoteDeletion,
    StatusEntry,
)
from melody.platform.process import ProcessError
from melody.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "ls-remote"})

_FIELD_SEP = "\x1f"
_RECORD_SEP = "\x1e"

# Message git prints when the branch to delete is already gone on the remote.
_REMOTE_REF_MISSING = "remote ref does not exist"

__all__ = ["Repository"]


class Repository:
    """Git repository driven through the `git` executable.

    Attributes:
        path: Path to the repository root (or any directory inside it)
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def status(self) -> Result[GitStatus, GitError]:
        """Runs `git status --porcelain=v1 -b` and parses the output."""
        result = self._run(["status", "--porcelain=v1", "-b"])
        if isinstance(result, Err):
            return Err(_git_error("status", result.error))
        return Ok(_parse_status(result.value))

    def current_branch(self) -> Result[str, GitError]:
        result = self._run(["branch", "--show-current"])
        if isinstance(result, Err):
            return Err(_git_error("branch --show-current", result.error))
        branch = result.value.strip()
        if not branch:
            return Err(
                GitError(
                    command="branch --show-current",
                    message="HEAD is detached, no current branch",
                )
            )
        return Ok(branch)

    def fetch(self) -> Result[None, GitError]:
        return self._run_void(["fetch"])

    def fetch_tags(self) -> Result[None, GitError]:
        return self._run_void(["fetch", "--tags"])

    def list_branches(self) -> Result[tuple[str, ...], GitError]:
        """List local and remote-tracking branches as full refnames."""
        result = self._run(["branch", "--all", "--no-color", "--format", "%(refname)"])
        if isinstance(result, Err):
            return Err(_git_error("branch --all", result.error))
        refs = tuple(ln.strip() for ln in result.value.splitlines() if ln.strip())
        return Ok(refs)

    def checkout_new(self, name: str) -> Result[None, GitError]:
        return self._run_void(["checkout", "-b", name])

    def checkout(self, name: str) -> Result[None, GitError]:
        return self._run_void(["checkout", name])

    def merge(self, branch: str) -> Result[None, GitError]:
        # A conflicted merge exits non-zero and is reported as a plain failure.
        return self._run_void(["merge", "--no-edit", branch])

    def tag(self, name: str, message: str, *, force: bool = False) -> Result[None, GitError]:
        args = ["tag", "--annotate", name, "--message", message]
        if force:
            args.append("--force")
        return self._run_void(args)

    def push(
        self,
        remote: str,
        ref: str,
        *,
        options: Sequence[str] = (),
        force: bool = False,
        set_upstream: bool = False,
    ) -> Result[None, GitError]:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        if force:
            args.append("--force")
        for opt in options:
            args.extend(["-o", opt])
        args.extend([remote, ref])
        return self._run_void(args)

    def delete_local_branch(self, name: str) -> Result[None, GitError]:
        return self._run_void(["branch", "--delete", name])

    def delete_remote_branch(self, remote: str, name: str) -> Result[RemoteDeletion, GitError]:
        result = self._run(["push", remote, "--delete", name])
        if isinstance(result, Ok):
            return Ok("deleted")
        stderr = result.error.stderr.lower()
        if _REMOTE_REF_MISSING in stderr:
            return Ok("absent")
        return Err(_git_error(f"push {remote} --delete {name}", result.error))

    def tag_exists(self, name: str) -> Result[bool, GitError]:
        """Check for a (fetched) tag.

        `rev-parse --verify --quiet` exits 1 without output when the ref is
        missing; any other failure is a real error.
        """
        result = self._run(["rev-parse", "--verify", "--quiet", f"refs/tags/{name}"])
        if isinstance(result, Ok):
            return Ok(True)
        e = result.error
        if e.returncode == 1 and not e.stderr.strip():
            return Ok(False)
        return Err(_git_error("rev-parse --verify", e))

    def last_tag(self) -> Result[str | None, GitError]:
        """Most recent tag reachable from HEAD, None when the repo has no tags."""
        result = self._run(["describe", "--tags", "--abbrev=0"])
        if isinstance(result, Ok):
            return Ok(result.value.strip() or None)
        stderr = result.error.stderr.lower()
        if "no names found" in stderr or "no tags can describe" in stderr:
            return Ok(None)
        return Err(_git_error("describe --tags", result.error))

    def commits_since_last_tag(self) -> Result[tuple[Commit, ...], GitError]:
        tag = self.last_tag()
        if isinstance(tag, Err):
            return tag
        rev_range = "HEAD" if tag.value is None else f"{tag.value}..HEAD"
        result = self._run(["log", f"--format=%H{_FIELD_SEP}%B{_RECORD_SEP}", rev_range])
        if isinstance(result, Err):
            return Err(_git_error("log", result.error))
        return Ok(_parse_log(result.value))

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _run_void(self, args: list[str]) -> Result[None, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(" ".join(args[:3]), result.error))
        return Ok(None)


def _git_error(command: str, error: ProcessError) -> GitError:
    message = error.stderr.strip() or error.stdout.strip() or f"git {command} failed"
    return GitError(command=command, message=message, returncode=error.returncode)


def _parse_status(output: str) -> GitStatus:
    lines = [ln for ln in output.splitlines() if ln.strip()]
    if not lines:
        return GitStatus(branch="")

    branch = ""
    upstream: str | None = None
    entry_lines = lines
    if lines[0].startswith("##"):
        branch, upstream = _parse_branch_line(lines[0])
        entry_lines = lines[1:]

    entries: list[StatusEntry] = []
    for line in entry_lines:
        if len(line) < 4:
            continue
        entries.append(StatusEntry(xy=line[:2], path=line[3:]))

    return GitStatus(branch=branch, upstream=upstream, entries=tuple(entries))


def _parse_branch_line(line: str) -> tuple[str, str | None]:
    """Parse `## branch...upstream [ahead N]`."""
    s = line[2:].strip()
    s = s.split(" [", 1)[0].strip()
    if "..." in s:
        left, right = s.split("...", 1)
        return (left.strip(), right.strip())
    return (s, None)


def _parse_log(output: str) -> tuple[Commit, ...]:
    commits: list[Commit] = []
    for record in output.split(_RECORD_SEP):
        record = record.strip("\n")
        if not record.strip():
            continue
        sha, _, message = record.partition(_FIELD_SEP)
        commits.append(Commit(sha=sha.strip(), message=message.strip()))
    return tuple(commits)
