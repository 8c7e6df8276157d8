"""Error type shared by the release flows and their collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "precondition",
    "resolution",
    "external_command",
    "remote_service",
    "user_abort",
    "io",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical failure payload of a release task.

    ``kind`` drives the exit code; ``hint`` carries the detail an operator
    needs to recover by hand (git stderr, the offending path, ...).
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None

    def pretty(self) -> str:
        if self.hint:
            return f"{self.message} (hint: {self.hint})"
        return self.message
