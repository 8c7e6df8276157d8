"""Tests for melody.release.flows (start, publish and finish release)."""

from __future__ import annotations

import json
from pathlib import Path

from melody.flow.context import RunFlags
from melody.flow.interaction import ScriptedInteraction
from melody.flow.runner import FlowResult
from melody.git.gateway import GitError
from melody.output.console import MockConsole
from melody.release.flows import (
    FlowName,
    ReleaseServices,
    build_tasks,
    run_release_flow,
)
from melody.remote.gitlab import RemoteError

from ._fakes import FakeChangelog, FakeGit, FakeRemote, commit, make_services, write_project


def _run(
    flow: FlowName,
    services: ReleaseServices,
    *,
    flags: RunFlags | None = None,
    interaction: ScriptedInteraction | None = None,
    console: MockConsole | None = None,
) -> FlowResult:
    return run_release_flow(
        flow=flow,
        services=services,
        flags=flags or RunFlags(),
        interaction=interaction or ScriptedInteraction(),
        console=console or MockConsole(),
    )


def _json(path: Path) -> dict[str, object]:
    return json.loads(path.read_text(encoding="utf-8"))


# =============================================================================
# Task lists
# =============================================================================


class TestTaskLists:
    def test_start_task_order(self, tmp_path: Path) -> None:
        names = [t.name for t in build_tasks("start", make_services(tmp_path))]
        assert names == [
            "Checking working tree",
            "Checking current branch",
            "Selecting new version",
            "Fetching remote branches",
            "Listing branches",
            "Validating existing releases",
            "Creating release branch",
            "Bumping manifest version",
            "Bumping lock file version",
            "Generating changelog",
        ]

    def test_publish_task_order(self, tmp_path: Path) -> None:
        names = [t.name for t in build_tasks("publish", make_services(tmp_path))]
        assert names == [
            "Checking working tree",
            "Checking release branch",
            "Fetching remote branches",
            "Publishing release branch",
        ]

    def test_finish_task_order(self, tmp_path: Path) -> None:
        names = [t.name for t in build_tasks("finish", make_services(tmp_path))]
        assert names == [
            "Verifying project",
            "Checking working tree",
            "Checking release branch",
            "Fetching remote tags",
            "Checking existing tag",
            "Checking out develop",
            "Merging release into develop",
            "Creating tag",
            "Pushing develop",
            "Pushing release tag",
            "Removing local release branch",
            "Removing remote release branch",
            "Creating merge request",
        ]


# =============================================================================
# Start release
# =============================================================================


class TestStartRelease:
    def _git(self) -> FakeGit:
        return FakeGit(commits=(commit("feat(cli): add dry run"), commit("fix: typo")))

    def test_happy_path(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = self._git()
        changelog = FakeChangelog()
        services = make_services(tmp_path, git=git, changelog=changelog)
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        result = _run("start", services, interaction=interaction)

        assert result.ok
        assert result.context.release_branch == "release/1.3.0"
        assert str(result.context.version) == "1.3.0"
        assert ("checkout_new", "release/1.3.0") in git.calls
        assert _json(tmp_path / "package.json")["version"] == "1.3.0"
        lock = _json(tmp_path / "package-lock.json")
        assert lock["version"] == "1.3.0"
        assert lock["packages"] == {"": {"name": "app", "version": "1.3.0"}}
        assert (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8") == changelog.section
        assert [str(v) for v in changelog.generated] == ["1.3.0"]

    def test_version_question_recommends_minor_for_feat(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        _run("start", make_services(tmp_path, git=self._git()), interaction=interaction)

        question = interaction.asked[0]
        assert question.key == "version"
        assert question.kind == "select"
        assert len(question.choices) == 8
        assert isinstance(question.default, int)
        assert question.choices[question.default].value == "1.3.0"
        assert question.choices[-1].custom is True

    def test_manifest_keeps_other_fields_and_order(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        _run("start", make_services(tmp_path, git=self._git()), interaction=interaction)

        text = (tmp_path / "package.json").read_text(encoding="utf-8")
        assert list(json.loads(text)) == ["name", "version", "private"]
        assert text.endswith("}\n")
        assert '\n  "name": "app"' in text

    def test_changelog_is_prepended(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        (tmp_path / "CHANGELOG.md").write_text("## 1.2.3 (2026-01-01)\n\n* old\n", encoding="utf-8")
        changelog = FakeChangelog(section="## 1.3.0 (2026-10-16)\n\n* new\n")
        services = make_services(tmp_path, git=self._git(), changelog=changelog)

        result = _run("start", services, interaction=ScriptedInteraction(answers={"version": "1.3.0"}))

        assert result.ok
        content = (tmp_path / "CHANGELOG.md").read_text(encoding="utf-8")
        assert content == "## 1.3.0 (2026-10-16)\n\n* new\n\n\n## 1.2.3 (2026-01-01)\n\n* old\n"

    def test_dirty_tree_aborts_before_anything_else(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(dirty=True)
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        result = _run("start", make_services(tmp_path, git=git), interaction=interaction)

        assert result.error is not None
        assert result.error.task == "Checking working tree"
        assert result.error.error.kind == "precondition"
        assert result.error.error.hint is not None
        assert "src/index.js" in result.error.error.hint
        assert git.calls == [("status",)]
        assert interaction.asked == []
        assert result.completed == ()

    def test_allow_dirty_skips_tree_check(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(dirty=True)
        console = MockConsole()

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            flags=RunFlags(allow_dirty=True),
            interaction=ScriptedInteraction(answers={"version": "1.2.4"}),
            console=console,
        )

        assert result.ok
        assert result.skipped == ("Checking working tree",)
        assert "status" not in git.names()
        assert console.find("Checking working tree (skipped)")

    def test_already_on_release_branch(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(branch="release/1.2.3")

        result = _run("start", make_services(tmp_path, git=git))

        assert result.error is not None
        assert result.error.task == "Checking current branch"
        assert result.error.error.kind == "precondition"
        assert "release/1.2.3" in result.error.error.message
        assert git.mutations() == []

    def test_existing_release_branch_aborts_before_creation(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(
            branches=("refs/heads/develop", "refs/remotes/origin/release/1.3.0"),
            commits=(commit("feat: x"),),
        )

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            interaction=ScriptedInteraction(answers={"version": "1.3.0"}),
        )

        assert result.error is not None
        assert result.error.task == "Validating existing releases"
        assert result.error.error.kind == "precondition"
        assert "checkout_new" not in git.names()
        assert _json(tmp_path / "package.json")["version"] == "1.2.3"

    def test_similar_branch_name_is_not_a_conflict(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(branches=("refs/heads/develop", "refs/heads/release/1.3.0-beta.0"))

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            interaction=ScriptedInteraction(answers={"version": "1.3.0"}),
        )

        assert result.ok

    def test_custom_version(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit()

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            interaction=ScriptedInteraction(answers={"version": "v2.0.0-rc.1"}),
        )

        assert result.ok
        assert ("checkout_new", "release/2.0.0-rc.1") in git.calls
        assert _json(tmp_path / "package.json")["version"] == "2.0.0-rc.1"

    def test_invalid_custom_version(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit()

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            interaction=ScriptedInteraction(answers={"version": "next"}),
        )

        assert result.error is not None
        assert result.error.task == "Selecting new version"
        assert result.error.error.kind == "resolution"
        assert "fetch" not in git.names()

    def test_declined_version_prompt(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit()

        result = _run("start", make_services(tmp_path, git=git))

        assert result.error is not None
        assert result.error.error.kind == "user_abort"
        assert result.completed == ("Checking working tree", "Checking current branch")
        assert git.mutations() == []

    def test_history_unavailable(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(failures={"commits_since_last_tag": GitError("log", "bad revision")})
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        result = _run("start", make_services(tmp_path, git=git), interaction=interaction)

        assert result.error is not None
        assert result.error.error.kind == "resolution"
        assert result.error.error.hint == "bad revision"
        assert interaction.asked == []

    def test_missing_lock_file(self, tmp_path: Path) -> None:
        write_project(tmp_path, lock=False)

        result = _run(
            "start",
            make_services(tmp_path),
            interaction=ScriptedInteraction(answers={"version": "1.2.4"}),
        )

        assert result.error is not None
        assert result.error.task == "Bumping lock file version"
        assert result.error.error.kind == "io"
        assert "Bumping manifest version" in result.completed

    def test_dry_run_mutates_nothing(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        before = {p.name: p.read_text(encoding="utf-8") for p in tmp_path.iterdir()}
        git = FakeGit(commits=(commit("feat: x"),))
        console = MockConsole()

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            flags=RunFlags(dry_run=True),
            interaction=ScriptedInteraction(answers={"version": "1.3.0"}),
            console=console,
        )

        assert result.ok
        assert git.mutations() == []
        after = {p.name: p.read_text(encoding="utf-8") for p in tmp_path.iterdir()}
        assert after == before
        assert not (tmp_path / "CHANGELOG.md").exists()
        assert console.find("dry-run: would run git checkout -b release/1.3.0")

    def test_call_order_is_deterministic(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit()

        _run("start", make_services(tmp_path, git=git), interaction=ScriptedInteraction(answers={"version": "1.2.4"}))

        assert git.names() == [
            "status",
            "current_branch",
            "commits_since_last_tag",
            "fetch",
            "list_branches",
            "checkout_new",
        ]


class TestCustomReleasePrefix:
    def test_start_then_finish(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(commits=(commit("feat: x"),))
        services = make_services(tmp_path, git=git, release_prefix="rc/")
        interaction = ScriptedInteraction(answers={"version": "1.3.0"})

        started = _run("start", services, interaction=interaction)

        assert started.ok
        assert git.branch == "rc/1.3.0"

        finished = _run("finish", services, flags=RunFlags(project="group/app"))

        assert finished.ok
        assert finished.context.release_branch == "rc/1.3.0"
        assert ("merge", "rc/1.3.0") in git.calls
        assert ("delete_remote_branch", "origin", "rc/1.3.0") in git.calls

    def test_publish(self, tmp_path: Path) -> None:
        git = FakeGit(branch="rc/1.3.0")

        result = _run("publish", make_services(tmp_path, git=git, release_prefix="rc/"))

        assert result.ok
        assert git.calls[-1] == ("push", "origin", "rc/1.3.0", "upstream")

    def test_start_refuses_prefixed_branch(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        git = FakeGit(branch="rc/1.2.3")

        result = _run("start", make_services(tmp_path, git=git, release_prefix="rc/"))

        assert result.error is not None
        assert result.error.task == "Checking current branch"


class TestUnreadableFiles:
    def test_changelog_not_utf8(self, tmp_path: Path) -> None:
        write_project(tmp_path)
        (tmp_path / "CHANGELOG.md").write_bytes(b"## 1.2.3\n\n* caf\xff\n")
        git = FakeGit()

        result = _run(
            "start",
            make_services(tmp_path, git=git),
            interaction=ScriptedInteraction(answers={"version": "1.2.4"}),
        )

        assert result.error is not None
        assert result.error.task == "Generating changelog"
        assert result.error.error.kind == "io"

    def test_manifest_not_utf8(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_bytes(b'{"version": "1.2.3", "name": "\xff"}')
        interaction = ScriptedInteraction(answers={"version": "1.2.4"})

        result = _run("start", make_services(tmp_path), interaction=interaction)

        assert result.error is not None
        assert result.error.task == "Selecting new version"
        assert result.error.error.kind == "io"
        assert interaction.asked == []


# =============================================================================
# Publish release
# =============================================================================


class TestPublishRelease:
    def test_pushes_release_branch_with_upstream(self, tmp_path: Path) -> None:
        git = FakeGit(branch="release/1.3.0")

        result = _run("publish", make_services(tmp_path, git=git))

        assert result.ok
        assert git.calls[-1] == ("push", "origin", "release/1.3.0", "upstream")

    def test_requires_release_branch(self, tmp_path: Path) -> None:
        git = FakeGit(branch="develop")

        result = _run("publish", make_services(tmp_path, git=git))

        assert result.error is not None
        assert result.error.task == "Checking release branch"
        assert result.error.error.kind == "precondition"
        assert git.mutations() == []

    def test_push_failure(self, tmp_path: Path) -> None:
        git = FakeGit(
            branch="release/1.3.0",
            failures={"push": GitError("push", "rejected", returncode=1)},
        )

        result = _run("publish", make_services(tmp_path, git=git))

        assert result.error is not None
        assert result.error.error.kind == "external_command"
        assert result.error.error.hint == "rejected"


# =============================================================================
# Finish release
# =============================================================================


class TestFinishRelease:
    def _setup(
        self,
        tmp_path: Path,
        *,
        tags: set[str] | None = None,
        failures: dict[str, GitError] | None = None,
        remote_branch_exists: bool = True,
    ) -> FakeGit:
        write_project(tmp_path, "1.3.0")
        return FakeGit(
            branch="release/1.3.0",
            tags=tags or set(),
            failures=failures or {},
            remote_branch_exists=remote_branch_exists,
        )

    def _flags(self, *, dry_run: bool = False, delete_branches: bool = True) -> RunFlags:
        return RunFlags(project="group/app", dry_run=dry_run, delete_branches=delete_branches)

    def test_happy_path_without_existing_tag(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)
        interaction = ScriptedInteraction()

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(),
            interaction=interaction,
        )

        assert result.ok
        assert interaction.asked == []
        assert result.context.force_tag is None
        assert git.calls == [
            ("status",),
            ("current_branch",),
            ("fetch_tags",),
            ("tag_exists", "v1.3.0"),
            ("checkout", "develop"),
            ("merge", "release/1.3.0"),
            ("tag", "v1.3.0", "chore: new tag v1.3.0", ""),
            ("push", "origin", "develop", "ci.skip"),
            ("push", "origin", "v1.3.0"),
            ("delete_local_branch", "release/1.3.0"),
            ("delete_remote_branch", "origin", "release/1.3.0"),
        ]
        assert result.skipped == ("Creating merge request",)

    def test_existing_tag_reassigned(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path, tags={"v1.3.0"})
        interaction = ScriptedInteraction(answers={"force_tag": True})

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(),
            interaction=interaction,
        )

        assert result.ok
        assert interaction.was_asked("force_tag")
        assert ("tag", "v1.3.0", "chore: new tag v1.3.0", "force") in git.calls
        assert ("push", "origin", "v1.3.0", "force") in git.calls

    def test_existing_tag_kept(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path, tags={"v1.3.0"})
        interaction = ScriptedInteraction(answers={"force_tag": False})

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(),
            interaction=interaction,
        )

        assert result.ok
        assert "Creating tag" in result.skipped
        assert "tag" not in git.names()
        assert ("push", "origin", "v1.3.0") in git.calls

    def test_missing_project_flag(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)

        result = _run("finish", make_services(tmp_path, git=git))

        assert result.error is not None
        assert result.error.task == "Verifying project"
        assert result.error.error.kind == "precondition"
        assert git.calls == []

    def test_unknown_project(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=RunFlags(project="group/other"),
        )

        assert result.error is not None
        assert result.error.error.kind == "remote_service"
        assert git.calls == []

    def test_remote_api_failure(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)
        remote = FakeRemote(fail=RemoteError("HTTP 500", status=500))

        result = _run("finish", make_services(tmp_path, git=git, remote=remote), flags=self._flags())

        assert result.error is not None
        assert result.error.error.kind == "remote_service"
        assert result.error.error.hint == "HTTP 500"

    def test_not_on_release_branch(self, tmp_path: Path) -> None:
        write_project(tmp_path, "1.3.0")
        git = FakeGit(branch="develop")

        result = _run("finish", make_services(tmp_path, git=git), flags=self._flags())

        assert result.error is not None
        assert result.error.task == "Checking release branch"
        assert git.mutations() == []

    def test_merge_conflict_stops_the_flow(self, tmp_path: Path) -> None:
        git = self._setup(
            tmp_path,
            failures={"merge": GitError("merge --no-edit", "CONFLICT (content): Merge conflict in a.js")},
        )
        console = MockConsole()

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(),
            console=console,
        )

        assert result.error is not None
        assert result.error.task == "Merging release into develop"
        assert result.error.error.kind == "external_command"
        assert result.error.error.hint is not None
        assert "CONFLICT" in result.error.error.hint
        assert result.completed[-1] == "Checking out develop"
        assert "tag" not in git.names()
        assert "push" not in git.names()
        assert console.find("error: Merging release into develop")

    def test_remote_branch_already_gone(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path, remote_branch_exists=False)
        console = MockConsole()

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(),
            console=console,
        )

        assert result.ok
        assert "Removing remote release branch" in result.completed

    def test_no_delete_keeps_branches(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)

        result = _run(
            "finish",
            make_services(tmp_path, git=git),
            flags=self._flags(delete_branches=False),
        )

        assert result.ok
        assert result.skipped == (
            "Removing local release branch",
            "Removing remote release branch",
            "Creating merge request",
        )
        assert "delete_local_branch" not in git.names()
        assert "delete_remote_branch" not in git.names()

    def test_merge_request_when_enabled(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path)
        remote = FakeRemote()
        changelog = FakeChangelog(latest="### Bug Fixes\n\n* fix (abc)")

        result = _run(
            "finish",
            make_services(tmp_path, git=git, remote=remote, changelog=changelog, merge_request=True),
            flags=self._flags(),
        )

        assert result.ok
        assert len(remote.created) == 1
        request = remote.created[0]
        assert request.title == "New release v1.3.0"
        assert request.source_branch == "develop"
        assert request.target_branch == "master"
        assert request.labels == ("release",)
        assert request.description == "### Bug Fixes\n\n* fix (abc)"
        assert result.context.merge_request is not None
        assert result.context.merge_request.endswith("/merge_requests/1")

    def test_dry_run_mutates_nothing(self, tmp_path: Path) -> None:
        git = self._setup(tmp_path, tags={"v1.3.0"})
        remote = FakeRemote()
        console = MockConsole()

        result = _run(
            "finish",
            make_services(tmp_path, git=git, remote=remote, merge_request=True),
            flags=self._flags(dry_run=True),
            interaction=ScriptedInteraction(answers={"force_tag": True}),
            console=console,
        )

        assert result.ok
        assert git.mutations() == []
        assert remote.created == []
        assert console.find("dry-run: would create tag v1.3.0 (force)")
