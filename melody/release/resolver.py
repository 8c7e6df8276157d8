"""Next-version resolution.

The recommendation follows the angular conventional-commit preset:

- any breaking change (`feat!:` header or `BREAKING CHANGE:` footer) -> major
- otherwise any `feat` commit -> minor
- otherwise -> patch

Candidates are every increment of the current version plus a manual entry.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from melody.core.result import Err, Ok, Result
from melody.git.gateway import Commit, GitError
from melody.release.errors import ReleaseError
from melody.release.semver import INCREMENTS, Increment, ReleaseBump, Version, parse_version

_HEADER_RE = re.compile(r"^(?P<type>[a-zA-Z]+)(?:\((?P<scope>[^)]*)\))?(?P<breaking>!)?: ")
_BREAKING_FOOTER_RE = re.compile(r"^BREAKING[ -]CHANGE:", re.MULTILINE)

CUSTOM = "custom"


@dataclass(frozen=True, slots=True)
class ConventionalCommit:
    type: str | None
    scope: str | None
    breaking: bool


@dataclass(frozen=True, slots=True)
class Candidate:
    """One selectable next version.

    ``version`` is None for the manual entry.
    """

    increment: Increment | None
    version: Version | None
    recommended: bool

    @property
    def label(self) -> str:
        return str(self.version) if self.version is not None else "Other (specify)"

    @property
    def hint(self) -> str:
        name = self.increment or CUSTOM
        return f"{name} (recommended)" if self.recommended else name


@dataclass(frozen=True, slots=True)
class Resolution:
    current: Version
    recommended: ReleaseBump
    candidates: tuple[Candidate, ...]

    @property
    def default_index(self) -> int:
        for i, c in enumerate(self.candidates):
            if c.recommended:
                return i
        return 0


def classify(message: str) -> ConventionalCommit:
    subject = message.splitlines()[0] if message else ""
    m = _HEADER_RE.match(subject)
    footer_breaking = _BREAKING_FOOTER_RE.search(message) is not None
    if m is None:
        return ConventionalCommit(type=None, scope=None, breaking=footer_breaking)
    return ConventionalCommit(
        type=m.group("type").lower(),
        scope=m.group("scope"),
        breaking=footer_breaking or m.group("breaking") is not None,
    )


def recommend_bump(messages: Iterable[str]) -> ReleaseBump:
    level: ReleaseBump = "patch"
    for message in messages:
        commit = classify(message)
        if commit.breaking:
            return "major"
        if commit.type == "feat":
            level = "minor"
    return level


def candidates(
    current: Version,
    recommended: ReleaseBump,
    *,
    prerelease_id: str | None = None,
) -> tuple[Candidate, ...]:
    out = [
        Candidate(
            increment=inc,
            version=current.bump(inc, prerelease_id),
            recommended=inc == recommended,
        )
        for inc in INCREMENTS
    ]
    out.append(Candidate(increment=None, version=None, recommended=False))
    return tuple(out)


def resolve(
    *,
    current_version: str,
    commits: Result[tuple[Commit, ...], GitError],
    prerelease_id: str | None = None,
) -> Result[Resolution, ReleaseError]:
    """Compute the recommendation and candidate set.

    Args:
        current_version: Version string from the project manifest.
        commits: Commit history since the last tag, as returned by the gateway.
        prerelease_id: Optional prerelease identifier (e.g. "beta").

    Returns:
        Ok(Resolution), or Err(resolution) if the version is unparsable or the
        history could not be read.
    """
    current = parse_version(current_version)
    if current is None:
        return Err(
            ReleaseError(
                kind="resolution",
                message=f"current version is not a semantic version: {current_version!r}",
            )
        )

    if isinstance(commits, Err):
        return Err(
            ReleaseError(
                kind="resolution",
                message="commit history since the last tag is unavailable",
                hint=commits.error.message,
            )
        )

    bump = recommend_bump(c.message for c in commits.value)
    return Ok(
        Resolution(
            current=current,
            recommended=bump,
            candidates=candidates(current, bump, prerelease_id=prerelease_id),
        )
    )
