"""Error presentation utilities.

Failure report and exit code mapping for release flow errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from melody.core.errors import ErrorCode
from melody.output.console import Style
from melody.release.errors import ReleaseError

if TYPE_CHECKING:
    from melody.flow.runner import FlowResult
    from melody.output.console import ConsoleProtocol

__all__ = ["print_flow_error", "print_release_error", "release_error_exit_code"]


def release_error_exit_code(error: ReleaseError) -> int:
    """Get exit code for a release error."""
    match error.kind:
        case "precondition":
            return int(ErrorCode.PRECONDITION_ERROR)
        case "resolution" | "user_abort":
            return int(ErrorCode.USER_ERROR)
        case "external_command":
            return int(ErrorCode.GIT_ERROR)
        case "remote_service":
            return int(ErrorCode.NETWORK_ERROR)
        case "io":
            return int(ErrorCode.IO_ERROR)


def print_release_error(error: ReleaseError, console: ConsoleProtocol) -> None:
    console.error(error.message)
    if error.hint:
        for line in error.hint.strip().splitlines():
            console.print(f"hint: {line}", Style.DIM)


def print_flow_error(result: FlowResult, console: ConsoleProtocol) -> None:
    """Print the failing step, its error and the steps already in place."""
    if result.error is None:
        return

    console.newline()
    console.print(f"Failed at: {result.error.task}", Style.BOLD)
    print_release_error(result.error.error, console)

    if result.completed:
        console.newline()
        console.print("Completed before the failure (not rolled back):", Style.WARNING)
        for name in result.completed:
            console.print(f"  - {name}", Style.DIM)
