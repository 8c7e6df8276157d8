from __future__ import annotations

from dataclasses import dataclass

import typer

from melody.flow.interaction import Answer, Question
from melody.output.console import ConsoleProtocol, Style

__all__ = ["TyperInteraction"]


@dataclass(slots=True)
class TyperInteraction:
    """Terminal prompts backed by ``typer.prompt`` / ``typer.confirm``.

    Ctrl-C / EOF at a prompt is reported as a cancelled question.
    """

    console: ConsoleProtocol

    def ask(self, question: Question) -> Answer | None:
        try:
            match question.kind:
                case "confirm":
                    return typer.confirm(question.message, default=bool(question.default))
                case "select":
                    return self._select(question)
        except typer.Abort:
            return None

    def _select(self, question: Question) -> str | None:
        if not question.choices:
            return None

        self.console.print(question.message, Style.BOLD)
        for i, choice in enumerate(question.choices, start=1):
            hint = f"  ({choice.hint})" if choice.hint else ""
            self.console.print(f"{i:2}. {choice.label}{hint}", Style.DIM)

        default_idx = int(question.default) + 1
        while True:
            raw = typer.prompt("Pick a number", default=str(default_idx))
            try:
                idx = int(raw)
            except ValueError:
                self.console.error("invalid number")
                continue
            if idx < 1 or idx > len(question.choices):
                self.console.error("out of range")
                continue

            chosen = question.choices[idx - 1]
            if chosen.custom:
                typed: str = typer.prompt("Version")
                return typed.strip()
            return chosen.value
