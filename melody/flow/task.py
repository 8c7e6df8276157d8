from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from melody.core.result import Result
from melody.flow.context import Context
from melody.flow.interaction import Question
from melody.release.errors import ReleaseError

__all__ = ["Action", "PromptBuilder", "SkipPredicate", "Task", "never"]

# Ok carries an optional detail line shown in verbose and dry-run output.
Action = Callable[[Context], Result[str | None, ReleaseError]]
SkipPredicate = Callable[[Context], bool]
# Ok(None) means the task needs no input this run.
PromptBuilder = Callable[[Context], Result[Question | None, ReleaseError]]


def never(ctx: Context) -> bool:
    del ctx
    return False


@dataclass(frozen=True, slots=True)
class Task:
    """One named step of a flow."""

    name: str
    action: Action
    skip: SkipPredicate = never
    prompt: PromptBuilder | None = None
