from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import typer
from dotenv import dotenv_values

from melody.core.config import CONFIG_FILE_NAME, apply_environment, load_config_or_default
from melody.core.errors import ErrorCode
from melody.core.result import Err
from melody.git.repository import Repository
from melody.output.console import ConsoleProtocol, RichConsole
from melody.release.changelog import GitChangelog
from melody.release.flows import ReleaseServices
from melody.remote.gitlab import GitLabClient
from melody.remote.http import RealHttpClient


@dataclass(frozen=True, slots=True)
class CLIContext:
    services: ReleaseServices
    console: ConsoleProtocol


def load_environment(root: Path) -> dict[str, str]:
    """Process environment over the values in `<root>/.env`."""
    file_values = {k: v for k, v in dotenv_values(root / ".env").items() if v is not None}
    return {**file_values, **os.environ}


def build_context(root: Path | None = None, env: Mapping[str, str] | None = None) -> CLIContext:
    """Wire the production collaborators for the repository at ``root``."""
    root = (root or Path.cwd()).resolve()
    config_result = load_config_or_default(root / CONFIG_FILE_NAME)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    config = apply_environment(config_result.value, load_environment(root) if env is None else env)
    git = Repository(root)

    services = ReleaseServices(
        root=root,
        config=config,
        git=git,
        remote=GitLabClient(config.gitlab, RealHttpClient()),
        changelog=GitChangelog(git=git, path=root / config.changelog),
    )
    return CLIContext(services=services, console=RichConsole())
