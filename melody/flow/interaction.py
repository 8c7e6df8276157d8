"""Operator interaction capability.

Tasks never prompt directly. They describe a ``Question`` and the runner asks
it through the injected ``Interaction``: the terminal implementation lives in
the CLI, tests use ``ScriptedInteraction``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Protocol

__all__ = [
    "Answer",
    "Choice",
    "Interaction",
    "Question",
    "QuestionKey",
    "ScriptedInteraction",
]

QuestionKey = Literal["version", "force_tag"]
Answer = str | bool


@dataclass(frozen=True, slots=True)
class Choice:
    """One entry of a select question.

    A ``custom`` choice asks the operator to type the value instead.
    """

    value: str
    label: str
    hint: str | None = None
    custom: bool = False


@dataclass(frozen=True, slots=True)
class Question:
    """A question whose answer decides the Context field named by ``key``.

    For ``select`` questions ``default`` is an index into ``choices``; for
    ``confirm`` questions it is the default boolean.
    """

    key: QuestionKey
    kind: Literal["select", "confirm"]
    message: str
    choices: tuple[Choice, ...] = ()
    default: int | bool = 0


class Interaction(Protocol):
    def ask(self, question: Question) -> Answer | None:
        """Return the answer, or None if the operator cancelled."""
        ...


def _no_answers() -> dict[QuestionKey, Answer | None]:
    return {}


def _no_questions() -> list[Question]:
    return []


@dataclass
class ScriptedInteraction:
    """Interaction returning canned answers keyed by question key.

    A key without a scripted answer (or scripted as None) behaves like an
    operator cancelling the prompt.
    """

    answers: dict[QuestionKey, Answer | None] = field(default_factory=_no_answers)
    asked: list[Question] = field(default_factory=_no_questions)

    def ask(self, question: Question) -> Answer | None:
        self.asked.append(question)
        return self.answers.get(question.key)

    def was_asked(self, key: QuestionKey) -> bool:
        return any(q.key == key for q in self.asked)
