"""Git access for the release flows.

Usage:
    from melody.git import Repository

    repo = Repository(Path("."))
    branch = repo.current_branch()
"""

from melody.git.gateway import (
    Commit,
    GitError,
    GitGateway,
    GitStatus,
    RemoteDeletion,
    StatusEntry,
)
from melody.git.repository import Repository

__all__ = [
    "Commit",
    "GitError",
    "GitGateway",
    "GitStatus",
    "RemoteDeletion",
    "Repository",
    "StatusEntry",
]
