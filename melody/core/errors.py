"""Process exit codes.

Every way a melody run can end maps to one of these values. They are part of
the command-line contract (CI scripts branch on them) and must stay stable:

- 0: release flow completed
- 1: operator error (bad arguments, declined prompt, unusable version)
- 2: repository precondition not met (dirty tree, wrong branch, conflicts)
- 3: a git command failed
- 4: the remote hosting service rejected or could not serve a request
- 5: a project file could not be read or written
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the melody CLI."""

    OK = 0
    USER_ERROR = 1
    PRECONDITION_ERROR = 2
    GIT_ERROR = 3
    NETWORK_ERROR = 4
    IO_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
