"""Mutable state shared by the tasks of one flow run.

A fresh ``Context`` is created for every run and dropped when it ends.
Values produced by a task are write-once: assigning ``version``,
``branches``, ``release_branch`` or ``merge_request`` a second time is an
error. ``force_tag`` is the exception, it records an operator decision and
may be decided again.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from melody.core.result import Err, Ok, Result
from melody.flow.interaction import Answer, Question
from melody.release.errors import ReleaseError
from melody.release.semver import Version, parse_version

__all__ = ["Context", "RunFlags"]


@dataclass(frozen=True, slots=True)
class RunFlags:
    """Global flags of a run, fixed before the first task starts."""

    dry_run: bool = False
    allow_dirty: bool = False
    project: str | None = None
    delete_branches: bool = True


@dataclass(slots=True)
class Context:
    flags: RunFlags
    version: Version | None = None
    branches: tuple[str, ...] | None = None
    release_branch: str | None = None
    force_tag: bool | None = None
    merge_request: str | None = None

    @property
    def dry_run(self) -> bool:
        return self.flags.dry_run

    def set_version(self, version: Version) -> Result[None, ReleaseError]:
        if self.version is not None:
            return _already_set("version", str(self.version))
        self.version = version
        return Ok(None)

    def set_branches(self, branches: tuple[str, ...]) -> Result[None, ReleaseError]:
        if self.branches is not None:
            return _already_set("branches", f"{len(self.branches)} refs")
        self.branches = branches
        return Ok(None)

    def set_release_branch(self, name: str) -> Result[None, ReleaseError]:
        if self.release_branch is not None:
            return _already_set("release_branch", self.release_branch)
        self.release_branch = name
        return Ok(None)

    def set_merge_request(self, reference: str) -> Result[None, ReleaseError]:
        if self.merge_request is not None:
            return _already_set("merge_request", self.merge_request)
        self.merge_request = reference
        return Ok(None)

    def decide_force_tag(self, decision: bool) -> None:
        self.force_tag = decision

    def require_version(self) -> Result[Version, ReleaseError]:
        if self.version is None:
            return Err(ReleaseError(kind="precondition", message="no release version resolved"))
        return Ok(self.version)

    def require_release_branch(self) -> Result[str, ReleaseError]:
        if self.release_branch is None:
            return Err(ReleaseError(kind="precondition", message="no release branch known"))
        return Ok(self.release_branch)

    def apply_answer(self, question: Question, answer: Answer) -> Result[None, ReleaseError]:
        """Merge an operator answer into the field named by ``question.key``."""
        match question.key:
            case "version":
                text = str(answer).strip()
                version = parse_version(text)
                if version is None:
                    return Err(
                        ReleaseError(
                            kind="resolution",
                            message=f"not a semantic version: {text!r}",
                            hint="Expected MAJOR.MINOR.PATCH[-PRERELEASE]",
                        )
                    )
                return self.set_version(version)
            case "force_tag":
                self.decide_force_tag(bool(answer))
                return Ok(None)

    def snapshot(self) -> Context:
        """Detached copy, used to compare state before/after a task."""
        return replace(self)


def _already_set(field_name: str, current: str) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="precondition",
            message=f"context field '{field_name}' is already set",
            hint=f"current value: {current}",
        )
    )
