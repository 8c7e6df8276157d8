"""Sequential task runner.

``run_tasks`` drives a flow: for each task in declared order it evaluates
the skip predicate, asks the task's question if it has one, merges the
answer into the Context and runs the action. The first failure stops the
run; nothing is rolled back.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from melody.core.result import Err, Ok, Result
from melody.flow.context import Context
from melody.flow.interaction import Interaction
from melody.flow.task import Task
from melody.output.console import ConsoleProtocol, Style
from melody.release.errors import ReleaseError

__all__ = ["FlowError", "FlowResult", "run_tasks"]


@dataclass(frozen=True, slots=True)
class FlowError:
    task: str
    error: ReleaseError


@dataclass(frozen=True, slots=True)
class FlowResult:
    """Outcome of one run.

    ``completed`` lists the tasks whose effects are in place, which is what an
    operator needs to recover by hand after a failure.
    """

    context: Context
    completed: tuple[str, ...]
    skipped: tuple[str, ...]
    error: FlowError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def run_tasks(
    *,
    tasks: Sequence[Task],
    context: Context,
    interaction: Interaction,
    console: ConsoleProtocol,
    verbose: bool = False,
) -> FlowResult:
    completed: list[str] = []
    skipped: list[str] = []

    for task in tasks:
        if task.skip(context):
            skipped.append(task.name)
            console.print(f"- {task.name} (skipped)", Style.DIM)
            continue

        outcome = _run_one(task, context, interaction)
        if isinstance(outcome, Err):
            console.error(task.name)
            return FlowResult(
                context=context,
                completed=tuple(completed),
                skipped=tuple(skipped),
                error=FlowError(task=task.name, error=outcome.error),
            )

        completed.append(task.name)
        console.success(task.name)
        detail = outcome.value
        if detail and (verbose or context.dry_run):
            console.print(f"  {detail}", Style.DIM)

    return FlowResult(context=context, completed=tuple(completed), skipped=tuple(skipped))


def _run_one(
    task: Task, context: Context, interaction: Interaction
) -> Result[str | None, ReleaseError]:
    if task.prompt is not None:
        built = task.prompt(context)
        if isinstance(built, Err):
            return built
        question = built.value
        if question is not None:
            answer = interaction.ask(question)
            if answer is None:
                return Err(
                    ReleaseError(
                        kind="user_abort",
                        message=f"prompt declined: {question.message}",
                    )
                )
            merged = context.apply_answer(question, answer)
            if isinstance(merged, Err):
                return merged

    result = task.action(context)
    if isinstance(result, Err):
        return result
    return Ok(result.value)
