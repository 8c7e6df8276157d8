from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

ReleaseBump = Literal["major", "minor", "patch"]
Increment = Literal["patch", "minor", "major", "prepatch", "preminor", "premajor", "prerelease"]

INCREMENTS: tuple[Increment, ...] = (
    "patch",
    "minor",
    "major",
    "prepatch",
    "preminor",
    "premajor",
    "prerelease",
)

_SEMVER_RE = re.compile(
    r"^[v=]?(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?"
    r"(?:\+[0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*)?$"
)

PreIdentifier = str | int


@dataclass(frozen=True, slots=True)
class Version:
    """A semantic version. Build metadata is dropped on parse."""

    major: int
    minor: int
    patch: int
    prerelease: tuple[PreIdentifier, ...] = ()

    def __str__(self) -> str:
        core = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return core + "-" + ".".join(str(p) for p in self.prerelease)
        return core

    def to_tag(self) -> str:
        return f"v{self}"

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def bump(self, kind: Increment, identifier: str | None = None) -> Version:
        """Apply a semver increment the way `npm version <kind>` does.

        A prerelease of the target version is promoted rather than bumped
        again: `minor` of 1.3.0-0 is 1.3.0, not 1.4.0.
        """
        match kind:
            case "major":
                if self.prerelease and self.minor == 0 and self.patch == 0:
                    return Version(self.major, 0, 0)
                return Version(self.major + 1, 0, 0)
            case "minor":
                if self.prerelease and self.patch == 0:
                    return Version(self.major, self.minor, 0)
                return Version(self.major, self.minor + 1, 0)
            case "patch":
                if self.prerelease:
                    return Version(self.major, self.minor, self.patch)
                return Version(self.major, self.minor, self.patch + 1)
            case "premajor":
                return Version(self.major + 1, 0, 0)._pre(identifier)
            case "preminor":
                return Version(self.major, self.minor + 1, 0)._pre(identifier)
            case "prepatch":
                return Version(self.major, self.minor, self.patch + 1)._pre(identifier)
            case "prerelease":
                if not self.prerelease:
                    return Version(self.major, self.minor, self.patch + 1)._pre(identifier)
                return self._pre(identifier)
            case _:
                raise AssertionError(f"unexpected increment: {kind}")

    def _pre(self, identifier: str | None) -> Version:
        parts: list[PreIdentifier] = list(self.prerelease)
        if not parts:
            parts = [0]
        else:
            for i in range(len(parts) - 1, -1, -1):
                value = parts[i]
                if isinstance(value, int):
                    parts[i] = value + 1
                    break
            else:
                parts.append(0)

        if identifier:
            if not (parts[0] == identifier and len(parts) > 1 and isinstance(parts[1], int)):
                parts = [identifier, 0]

        return Version(self.major, self.minor, self.patch, tuple(parts))


def parse_version(text: str) -> Version | None:
    """Parse `1.2.3`, `v1.2.3-beta.1`, `1.2.3+build.5`. Returns None if invalid."""
    m = _SEMVER_RE.match(text.strip())
    if m is None:
        return None
    pre: tuple[PreIdentifier, ...] = ()
    if m.group(4):
        pre = tuple(int(p) if p.isdigit() else p for p in m.group(4).split("."))
    return Version(int(m.group(1)), int(m.group(2)), int(m.group(3)), pre)
