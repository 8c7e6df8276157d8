"""Task lists of the release flows.

Each flow is data: a tuple of ``Task`` built once from ``ReleaseServices``
before the run starts. Tasks that mutate the repository, the filesystem or
the remote return a ``dry-run:`` detail instead of acting when the run is a
dry run; read and validation tasks always execute.

- start:   validate, pick the version, branch off, bump files, changelog
- publish: push the release branch to the remote
- finish:  merge into develop, tag, push, clean up, open the merge request
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from melody.core.config import Config
from melody.core.result import Err, Ok, Result
from melody.flow.context import Context, RunFlags
from melody.flow.interaction import Choice, Interaction, Question
from melody.flow.runner import FlowResult, run_tasks
from melody.flow.task import Task
from melody.git.gateway import GitError, GitGateway
from melody.output.console import ConsoleProtocol
from melody.release import manifest
from melody.release.changelog import (
    ChangelogGenerator,
    prepend_section,
    read_changelog,
    write_changelog,
)
from melody.release.errors import ReleaseError
from melody.release.resolver import resolve
from melody.release.semver import parse_version
from melody.remote.gitlab import MergeRequest, RemoteServiceClient

__all__ = [
    "FLOWS",
    "FlowName",
    "ReleaseServices",
    "build_tasks",
    "finish_release_tasks",
    "is_release_branch",
    "publish_release_tasks",
    "run_release_flow",
    "start_release_tasks",
]

FlowName = Literal["start", "publish", "finish"]

RELEASE_MARKER = "release"
CI_SKIP_OPTION = "ci.skip"

TaskResult = Result[str | None, ReleaseError]


@dataclass(frozen=True, slots=True)
class ReleaseServices:
    """Collaborators and settings the flows are built from."""

    root: Path
    config: Config
    git: GitGateway
    remote: RemoteServiceClient
    changelog: ChangelogGenerator

    def path(self, relative: str) -> Path:
        return self.root / relative


def _git_failed(error: GitError, message: str) -> Err[ReleaseError]:
    return Err(ReleaseError(kind="external_command", message=message, hint=error.message))


def _dry_run(message: str) -> TaskResult:
    return Ok(f"dry-run: {message}")


def is_release_branch(config: Config, name: str) -> bool:
    """Branches under the configured prefix, or any branch named like a release."""
    return name.startswith(config.release_prefix) or RELEASE_MARKER in name


# -----------------------------------------------------------------------------
# Shared tasks
# -----------------------------------------------------------------------------


def _clean_working_tree(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        status = s.git.status()
        if isinstance(status, Err):
            return _git_failed(status.error, "could not read working tree status")
        if not status.value.is_clean:
            return Err(
                ReleaseError(
                    kind="precondition",
                    message="working tree is not clean",
                    hint=status.value.summary(),
                )
            )
        return Ok("working tree clean")

    return Task(
        name="Checking working tree",
        action=action,
        skip=lambda ctx: ctx.flags.allow_dirty,
    )


def _require_release_branch(s: ReleaseServices, *, read_version: bool) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = s.git.current_branch()
        if isinstance(branch, Err):
            return _git_failed(branch.error, "could not determine the current branch")
        name = branch.value
        if not is_release_branch(s.config, name):
            return Err(
                ReleaseError(
                    kind="precondition",
                    message=f"current branch is not a release branch: {name}",
                )
            )

        stored = ctx.set_release_branch(name)
        if isinstance(stored, Err):
            return stored
        if not read_version:
            return Ok(f"on {name}")

        raw = manifest.read_version(s.path(s.config.manifest))
        if isinstance(raw, Err):
            return raw
        version = parse_version(raw.value)
        if version is None:
            return Err(
                ReleaseError(
                    kind="resolution",
                    message=f"manifest version is not a semantic version: {raw.value!r}",
                    hint=s.config.manifest,
                )
            )
        stored = ctx.set_version(version)
        if isinstance(stored, Err):
            return stored
        return Ok(f"on {name}, releasing {version}")

    return Task(name="Checking release branch", action=action)


def _fetch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        fetched = s.git.fetch()
        if isinstance(fetched, Err):
            return _git_failed(fetched.error, "fetching remote branches failed")
        return Ok(None)

    return Task(name="Fetching remote branches", action=action)


# -----------------------------------------------------------------------------
# Start release
# -----------------------------------------------------------------------------


def _not_on_release_branch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = s.git.current_branch()
        if isinstance(branch, Err):
            return _git_failed(branch.error, "could not determine the current branch")
        if is_release_branch(s.config, branch.value):
            return Err(
                ReleaseError(
                    kind="precondition",
                    message=f"already checked out in release branch: {branch.value}",
                    hint="Finish or publish it with `melody release --finish|--publish`.",
                )
            )
        return Ok(f"on {branch.value}")

    return Task(name="Checking current branch", action=action)


def _select_version(s: ReleaseServices) -> Task:
    def prompt(ctx: Context) -> Result[Question | None, ReleaseError]:
        current = manifest.read_version(s.path(s.config.manifest))
        if isinstance(current, Err):
            return current

        resolved = resolve(
            current_version=current.value,
            commits=s.git.commits_since_last_tag(),
            prerelease_id=s.config.prerelease_id,
        )
        if isinstance(resolved, Err):
            return resolved

        resolution = resolved.value
        choices = tuple(
            Choice(
                value=str(c.version) if c.version is not None else "",
                label=c.label,
                hint=c.hint,
                custom=c.version is None,
            )
            for c in resolution.candidates
        )
        return Ok(
            Question(
                key="version",
                kind="select",
                message=f"New version (current {resolution.current})",
                choices=choices,
                default=resolution.default_index,
            )
        )

    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        return Ok(f"new version {version.value}")

    return Task(name="Selecting new version", action=action, prompt=prompt)


def _list_branches(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        refs = s.git.list_branches()
        if isinstance(refs, Err):
            return _git_failed(refs.error, "listing branches failed")
        stored = ctx.set_branches(refs.value)
        if isinstance(stored, Err):
            return stored
        return Ok(f"{len(refs.value)} branches")

    return Task(name="Listing branches", action=action)


def _no_existing_release(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        name = s.config.release_branch(str(version.value))
        for ref in ctx.branches or ():
            if ref == name or ref.endswith(f"/{name}"):
                return Err(
                    ReleaseError(
                        kind="precondition",
                        message=f"release branch already exists: {ref}",
                    )
                )
        return Ok(f"{name} is free")

    return Task(name="Validating existing releases", action=action)


def _create_release_branch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        name = s.config.release_branch(str(version.value))
        stored = ctx.set_release_branch(name)
        if isinstance(stored, Err):
            return stored
        if ctx.dry_run:
            return _dry_run(f"would run git checkout -b {name}")

        created = s.git.checkout_new(name)
        if isinstance(created, Err):
            return _git_failed(created.error, f"could not create branch {name}")
        return Ok(f"switched to {name}")

    return Task(name="Creating release branch", action=action)


def _bump_file(s: ReleaseServices, *, name: str, relative: Callable[[Config], str]) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        path = s.path(relative(s.config))
        rendered = manifest.render_version(path, str(version.value))
        if isinstance(rendered, Err):
            return rendered
        if ctx.dry_run:
            return _dry_run(f"would set version {version.value} in {path.name}")

        written = manifest.write_manifest(path, rendered.value)
        if isinstance(written, Err):
            return written
        return Ok(f"{path.name} -> {version.value}")

    return Task(name=name, action=action)


def _generate_changelog(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version

        section = s.changelog.generate(version.value)
        if isinstance(section, Err):
            return section
        path = s.path(s.config.changelog)
        existing = read_changelog(path)
        if isinstance(existing, Err):
            return existing

        content = prepend_section(existing.value, section.value)
        if ctx.dry_run:
            lines = len(section.value.splitlines())
            return _dry_run(f"would prepend {lines} lines to {path.name}")

        written = write_changelog(path, content)
        if isinstance(written, Err):
            return written
        return Ok(f"{path.name} updated")

    return Task(name="Generating changelog", action=action)


def start_release_tasks(s: ReleaseServices) -> tuple[Task, ...]:
    return (
        _clean_working_tree(s),
        _not_on_release_branch(s),
        _select_version(s),
        _fetch(s),
        _list_branches(s),
        _no_existing_release(s),
        _create_release_branch(s),
        _bump_file(s, name="Bumping manifest version", relative=lambda c: c.manifest),
        _bump_file(s, name="Bumping lock file version", relative=lambda c: c.lock_file),
        _generate_changelog(s),
    )


# -----------------------------------------------------------------------------
# Publish release
# -----------------------------------------------------------------------------


def _push_release_branch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = ctx.require_release_branch()
        if isinstance(branch, Err):
            return branch
        remote = s.config.remote
        if ctx.dry_run:
            return _dry_run(f"would run git push --set-upstream {remote} {branch.value}")

        pushed = s.git.push(remote, branch.value, set_upstream=True)
        if isinstance(pushed, Err):
            return _git_failed(pushed.error, f"pushing {branch.value} failed")
        return Ok(f"{branch.value} -> {remote}")

    return Task(name="Publishing release branch", action=action)


def publish_release_tasks(s: ReleaseServices) -> tuple[Task, ...]:
    return (
        _clean_working_tree(s),
        _require_release_branch(s, read_version=False),
        _fetch(s),
        _push_release_branch(s),
    )


# -----------------------------------------------------------------------------
# Finish release
# -----------------------------------------------------------------------------


def _verify_project(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        project = ctx.flags.project
        if not project:
            return Err(
                ReleaseError(
                    kind="precondition",
                    message="You must pass the `--project` flag to continue",
                )
            )
        found = s.remote.validate_project(project)
        if isinstance(found, Err):
            return Err(
                ReleaseError(
                    kind="remote_service",
                    message="could not verify the project",
                    hint=found.error.message,
                )
            )
        if not found.value:
            return Err(
                ReleaseError(
                    kind="remote_service",
                    message=f"project could not be found: {project}",
                )
            )
        return Ok(f"project {project}")

    return Task(name="Verifying project", action=action)


def _fetch_tags(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        fetched = s.git.fetch_tags()
        if isinstance(fetched, Err):
            return _git_failed(fetched.error, "fetching remote tags failed")
        return Ok(None)

    return Task(name="Fetching remote tags", action=action)


def _existing_tag(s: ReleaseServices) -> Task:
    def prompt(ctx: Context) -> Result[Question | None, ReleaseError]:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        tag = version.value.to_tag()
        exists = s.git.tag_exists(tag)
        if isinstance(exists, Err):
            return _git_failed(exists.error, f"could not look up tag {tag}")
        if not exists.value:
            return Ok(None)
        return Ok(
            Question(
                key="force_tag",
                kind="confirm",
                message=f"Tag {tag} already created, do you want to assign it to a new commit?",
                default=True,
            )
        )

    def action(ctx: Context) -> TaskResult:
        match ctx.force_tag:
            case None:
                return Ok("tag does not exist yet")
            case True:
                return Ok("existing tag will be moved")
            case False:
                return Ok("existing tag kept")

    return Task(name="Checking existing tag", action=action, prompt=prompt)


def _checkout_develop(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        develop = s.config.develop_branch
        if ctx.dry_run:
            return _dry_run(f"would run git checkout {develop}")
        switched = s.git.checkout(develop)
        if isinstance(switched, Err):
            return _git_failed(switched.error, f"could not check out {develop}")
        return Ok(None)

    return Task(name="Checking out develop", action=action)


def _merge_release(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = ctx.require_release_branch()
        if isinstance(branch, Err):
            return branch
        develop = s.config.develop_branch
        if ctx.dry_run:
            return _dry_run(f"would run git merge {branch.value}")
        merged = s.git.merge(branch.value)
        if isinstance(merged, Err):
            return Err(
                ReleaseError(
                    kind="external_command",
                    message=f"merging {branch.value} into {develop} failed",
                    hint=merged.error.message,
                )
            )
        return Ok(f"{branch.value} -> {develop}")

    return Task(name="Merging release into develop", action=action)


def _create_tag(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        tag = version.value.to_tag()
        force = ctx.force_tag is True
        if ctx.dry_run:
            return _dry_run(f"would create tag {tag}" + (" (force)" if force else ""))
        tagged = s.git.tag(tag, f"chore: new tag {tag}", force=force)
        if isinstance(tagged, Err):
            return _git_failed(tagged.error, f"could not create tag {tag}")
        return Ok(tag)

    return Task(
        name="Creating tag",
        action=action,
        skip=lambda ctx: ctx.force_tag is False,
    )


def _push_develop(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        remote = s.config.remote
        develop = s.config.develop_branch
        if ctx.dry_run:
            return _dry_run(f"would run git push {remote} {develop} -o {CI_SKIP_OPTION}")
        pushed = s.git.push(remote, develop, options=(CI_SKIP_OPTION,))
        if isinstance(pushed, Err):
            return _git_failed(pushed.error, f"pushing {develop} failed")
        return Ok(f"{develop} -> {remote}")

    return Task(name="Pushing develop", action=action)


def _push_tag(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        tag = version.value.to_tag()
        remote = s.config.remote
        if ctx.dry_run:
            return _dry_run(f"would run git push {remote} {tag}")
        pushed = s.git.push(remote, tag, force=ctx.force_tag is True)
        if isinstance(pushed, Err):
            return _git_failed(pushed.error, f"pushing tag {tag} failed")
        return Ok(f"{tag} -> {remote}")

    return Task(name="Pushing release tag", action=action)


def _keep_branches(ctx: Context) -> bool:
    return not ctx.flags.delete_branches


def _delete_local_branch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = ctx.require_release_branch()
        if isinstance(branch, Err):
            return branch
        if ctx.dry_run:
            return _dry_run(f"would run git branch --delete {branch.value}")
        deleted = s.git.delete_local_branch(branch.value)
        if isinstance(deleted, Err):
            return _git_failed(deleted.error, f"could not delete local branch {branch.value}")
        return Ok(f"deleted {branch.value}")

    return Task(name="Removing local release branch", action=action, skip=_keep_branches)


def _delete_remote_branch(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        branch = ctx.require_release_branch()
        if isinstance(branch, Err):
            return branch
        remote = s.config.remote
        if ctx.dry_run:
            return _dry_run(f"would run git push {remote} --delete {branch.value}")
        deleted = s.git.delete_remote_branch(remote, branch.value)
        if isinstance(deleted, Err):
            return _git_failed(deleted.error, f"could not delete {remote}/{branch.value}")
        if deleted.value == "absent":
            return Ok(f"{remote}/{branch.value} does not exist")
        return Ok(f"deleted {remote}/{branch.value}")

    return Task(name="Removing remote release branch", action=action, skip=_keep_branches)


def _create_merge_request(s: ReleaseServices) -> Task:
    def action(ctx: Context) -> TaskResult:
        version = ctx.require_version()
        if isinstance(version, Err):
            return version
        project = ctx.flags.project
        if not project:
            return Err(ReleaseError(kind="precondition", message="no project to open the merge request in"))

        description = s.changelog.get_latest(False)
        if isinstance(description, Err):
            return description

        request = MergeRequest(
            project=project,
            source_branch=s.config.develop_branch,
            target_branch=s.config.main_branch,
            title=f"New release {version.value.to_tag()}",
            description=description.value,
            labels=(s.config.merge_request.label,),
        )
        if ctx.dry_run:
            return _dry_run(
                f"would open merge request {request.source_branch} -> {request.target_branch}"
            )

        created = s.remote.create_merge_request(request)
        if isinstance(created, Err):
            return Err(
                ReleaseError(
                    kind="remote_service",
                    message="could not create the merge request",
                    hint=created.error.message,
                )
            )
        stored = ctx.set_merge_request(created.value)
        if isinstance(stored, Err):
            return stored
        return Ok(created.value)

    return Task(
        name="Creating merge request",
        action=action,
        skip=lambda ctx: not s.config.merge_request.enabled,
    )


def finish_release_tasks(s: ReleaseServices) -> tuple[Task, ...]:
    return (
        _verify_project(s),
        _clean_working_tree(s),
        _require_release_branch(s, read_version=True),
        _fetch_tags(s),
        _existing_tag(s),
        _checkout_develop(s),
        _merge_release(s),
        _create_tag(s),
        _push_develop(s),
        _push_tag(s),
        _delete_local_branch(s),
        _delete_remote_branch(s),
        _create_merge_request(s),
    )


FLOWS: dict[FlowName, Callable[[ReleaseServices], tuple[Task, ...]]] = {
    "start": start_release_tasks,
    "publish": publish_release_tasks,
    "finish": finish_release_tasks,
}


def build_tasks(flow: FlowName, services: ReleaseServices) -> tuple[Task, ...]:
    return FLOWS[flow](services)


def run_release_flow(
    *,
    flow: FlowName,
    services: ReleaseServices,
    flags: RunFlags,
    interaction: Interaction,
    console: ConsoleProtocol,
    verbose: bool = False,
) -> FlowResult:
    """Build the flow's task list and run it against a fresh Context."""
    tasks = build_tasks(flow, services)
    return run_tasks(
        tasks=tasks,
        context=Context(flags=flags),
        interaction=interaction,
        console=console,
        verbose=verbose,
    )
