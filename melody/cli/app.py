from __future__ import annotations

import typer

from melody import __version__
from melody.cli.context import build_context
from melody.cli.prompt import TyperInteraction
from melody.core.errors import ErrorCode
from melody.flow.context import RunFlags
from melody.flow.runner import FlowResult
from melody.output.console import ConsoleProtocol, Style
from melody.output.errors import print_flow_error, release_error_exit_code
from melody.release.flows import FlowName, ReleaseServices, run_release_flow

TASKS = ("release",)

app = typer.Typer(
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit(code=0)


@app.command()
def run(
    ctx: typer.Context,
    task: str | None = typer.Argument(None, help="Task to run (release)"),
    finish: bool = typer.Option(False, "--finish", "-f", help="Finish the current release"),
    publish: bool = typer.Option(False, "--publish", "-p", help="Publish the current release branch"),
    project: str | None = typer.Option(
        None, "--project", "-i", help="Project id or path on the hosting service"
    ),
    allow_dirty: bool = typer.Option(False, "--allow-dirty", help="Skip the clean tree check"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate without changing anything"),
    delete: bool = typer.Option(
        True, "--delete/--no-delete", help="Delete the release branch after finishing"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show task details"),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
) -> None:
    """Run a git-flow release task."""
    del version
    if task is None:
        typer.echo(ctx.get_help())
        raise typer.Exit(code=0)

    if task not in TASKS:
        typer.echo(f"error: Task '{task}' is not a valid task", err=True)
        typer.echo(f"Possible values are: {', '.join(TASKS)}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    if finish and publish:
        typer.echo("error: --finish and --publish cannot be combined", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    flow: FlowName = "finish" if finish else "publish" if publish else "start"
    flags = RunFlags(
        dry_run=dry_run,
        allow_dirty=allow_dirty,
        project=project,
        delete_branches=delete,
    )

    cli_ctx = build_context()
    console = cli_ctx.console
    console.header(f"{flow.capitalize()} release" + (" (dry run)" if dry_run else ""))

    result = run_release_flow(
        flow=flow,
        services=cli_ctx.services,
        flags=flags,
        interaction=TyperInteraction(console),
        console=console,
        verbose=verbose,
    )

    if result.error is not None:
        print_flow_error(result, console)
        raise typer.Exit(code=release_error_exit_code(result.error.error))

    _print_summary(flow, result, cli_ctx.services, console)


def _print_summary(
    flow: FlowName, result: FlowResult, services: ReleaseServices, console: ConsoleProtocol
) -> None:
    ctx = result.context
    config = services.config
    console.newline()
    if ctx.dry_run:
        console.print("dry-run: no changes were made", Style.WARNING)

    match flow:
        case "start":
            if ctx.dry_run:
                console.success(f"Release branch {ctx.release_branch} would be created")
                return
            console.success(f"You are now on branch {ctx.release_branch}")
            console.print("Publish it with: melody release --publish", Style.DIM)
            console.print("Finish it with:  melody release --finish --project <id>", Style.DIM)
        case "publish":
            console.success(f"{ctx.release_branch} published to {config.remote}")
        case "finish":
            tag = ctx.version.to_tag() if ctx.version is not None else "?"
            if ctx.force_tag is False:
                console.success(f"Release {tag} finished (existing tag kept)")
            else:
                console.success(f"Release {tag} finished and tagged")
            if ctx.merge_request:
                console.info(f"Merge request: {ctx.merge_request}")


def main() -> None:
    app()
