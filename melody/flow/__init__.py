"""Task-orchestration engine shared by the release flows."""

from melody.flow.context import Context, RunFlags
from melody.flow.interaction import Answer, Choice, Interaction, Question, ScriptedInteraction
from melody.flow.runner import FlowError, FlowResult, run_tasks
from melody.flow.task import Task, never

__all__ = [
    "Answer",
    "Choice",
    "Context",
    "FlowError",
    "FlowResult",
    "Interaction",
    "Question",
    "RunFlags",
    "ScriptedInteraction",
    "Task",
    "never",
    "run_tasks",
]
