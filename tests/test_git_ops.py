from datetime import datetime

import pytest

from repo_manager.core import git_ops
from repo_manager.core.dependencies import DependencyToolchain
from repo_manager.core.pull_requests import GhCliHost, collect_pull_requests, create_pull_request
from repo_manager.domain.models import Outcome

HEAD = ("git", "rev-parse", "--abbrev-ref", "HEAD")
NOW = datetime(2024, 5, 1, 12, 30, 0)


@pytest.mark.parametrize(
    "operation",
    [
        lambda repo, runner: git_ops.current_branch(repo, runner),
        lambda repo, runner: git_ops.list_branches(repo, runner),
        lambda repo, runner: git_ops.repository_status(repo, runner),
        lambda repo, runner: git_ops.working_tree_changes(repo, runner),
        lambda repo, runner: git_ops.update_to_branch(repo, runner, "dev"),
        lambda repo, runner: git_ops.sync_repository(repo, runner),
        lambda repo, runner: git_ops.drop_changes(repo, runner, force=True),
        lambda repo, runner: git_ops.stash_save(repo, runner),
        lambda repo, runner: git_ops.stash_pop(repo, runner),
        lambda repo, runner: git_ops.stash_list(repo, runner),
        lambda repo, runner: git_ops.search_repository(repo, runner, "x"),
        lambda repo, runner: git_ops.recent_commits(repo, runner),
        lambda repo, runner: git_ops.create_branch(repo, runner, "1"),
        lambda repo, runner: collect_pull_requests(repo, runner, GhCliHost(runner)),
        lambda repo, runner: create_pull_request(repo, runner, GhCliHost(runner), "Title"),
    ],
)
def test_missing_directory_runs_no_commands(operation, missing_repo, runner):
    result = operation(missing_repo, runner)

    assert result.outcome == Outcome.NOT_FOUND
    assert result.error == "Directory not found"
    assert runner.calls == []


def test_command_failure_becomes_result(repo, runner):
    runner.on(*HEAD, error="fatal: not a git repository", returncode=128)

    result = git_ops.current_branch(repo, runner)

    assert result.outcome == Outcome.COMMAND_FAILED
    assert "not a git repository" in result.error


def test_current_branch(repo, runner):
    runner.on(*HEAD, output="REN-12")
    result = git_ops.current_branch(repo, runner)
    assert result.success
    assert result.branch == "REN-12"


def test_list_branches_survives_fetch_failure(repo, runner):
    runner.on("git", "fetch", error="Could not resolve host")
    runner.on("git", "branch", "-a", output="* main\n  remotes/origin/main\n  remotes/origin/HEAD\n  remotes/origin/dev")

    result = git_ops.list_branches(repo, runner)

    assert result.success
    assert result.details["branches"] == ["main", "dev"]


def test_repository_status_without_upstream(repo, runner):
    runner.on(*HEAD, output="REN-1")
    runner.on("git", "status", "--porcelain", output=" M a.php\n?? b.php")
    runner.on("git", "rev-list", error="fatal: no upstream configured for branch", returncode=128)

    result = git_ops.repository_status(repo, runner)
    status = result.details["status"]

    assert status.uncommitted_file_count == 2
    assert status.has_unstaged_changes
    assert not status.has_staged_changes
    assert (status.commits_ahead, status.commits_behind) == (0, 0)
    assert result.details["has_upstream"] is False
    assert not status.is_clean


def test_repository_status_clean(repo, runner):
    runner.on(*HEAD, output="dev")
    runner.on("git", "rev-list", output="0\t0")

    status = git_ops.repository_status(repo, runner).details["status"]

    assert status.is_clean


def test_update_refuses_missing_remote_branch(repo, runner):
    runner.on(*HEAD, output="dev")
    runner.on("git", "rev-parse", "--verify", error="", returncode=1)

    result = git_ops.update_to_branch(repo, runner, "REN-404", now=NOW)

    assert result.outcome == Outcome.REFUSED
    assert result.error == "Branch 'REN-404' does not exist in remote"
    assert not runner.ran("git", "checkout")
    assert not runner.ran("git", "pull")


def test_update_stashes_dirty_tree_and_installs_dependencies(repo, runner):
    (repo.path / "composer.json").write_text("{}")
    (repo.path / "package.json").write_text("{}")
    runner.on(*HEAD, output="dev")
    runner.on("git", "diff-index", error="", returncode=1)
    runner.on("git", "log", "-1", output="abc123 - Fix (2 hours ago)")
    toolchain = DependencyToolchain(("/usr/bin/php8.2", "/usr/local/bin/composer26"), npm=True)

    result = git_ops.update_to_branch(repo, runner, "REN-1", toolchain=toolchain, now=NOW)

    assert result.success
    assert result.branch == "REN-1"
    assert result.commit == "abc123 - Fix (2 hours ago)"
    assert result.details["previous_branch"] == "dev"
    assert result.details["stashed"] == "Auto-stash before branch update 2024-05-01T12:30:00"
    assert result.details["dependencies"] == ["composer install", "npm install"]

    order = [argv[:2] for argv in runner.commands]
    assert order.index(("git", "stash")) < order.index(("git", "fetch")) < order.index(("git", "checkout"))
    assert ("/usr/bin/php8.2", "/usr/local/bin/composer26", "install", "--no-interaction") in runner.commands
    assert ("npm", "install") in runner.commands


def test_update_dependency_failure_is_only_a_warning(repo, runner):
    (repo.path / "composer.json").write_text("{}")
    runner.on(*HEAD, output="dev")
    runner.on("composer", error="Your lock file does not contain a compatible set of packages")

    result = git_ops.update_to_branch(repo, runner, "dev", use_composer_update=True)

    assert result.success
    assert "compatible set" in result.details["dependency_warning"]
    assert runner.ran("composer", "update")


def test_update_skip_deps(repo, runner):
    (repo.path / "composer.json").write_text("{}")

    result = git_ops.update_to_branch(repo, runner, "dev", skip_deps=True)

    assert result.success
    assert not runner.ran("composer")
    assert "dependencies" not in result.details


def test_sync_refused_when_dirty(repo, runner):
    runner.on(*HEAD, output="dev")
    runner.on("git", "status", "--porcelain", output=" M a.php")

    result = git_ops.sync_repository(repo, runner)

    assert result.outcome == Outcome.REFUSED
    assert result.error == git_ops.SYNC_DIRTY_REASON
    assert not runner.ran("git", "pull")


def test_sync_clean(repo, runner):
    runner.on(*HEAD, output="dev")
    result = git_ops.sync_repository(repo, runner)
    assert result.success
    assert runner.ran("git", "fetch")
    assert runner.ran("git", "pull")


def test_drop_declined_runs_nothing_destructive(repo, runner):
    runner.on("git", "status", "--porcelain", output=" M a.php\n?? tmp.log")
    prompts = []

    result = git_ops.drop_changes(repo, runner, confirm=lambda text: prompts.append(text) or False)

    assert result.outcome == Outcome.CANCELLED
    assert not runner.ran("git", "reset")
    assert not runner.ran("git", "clean")
    assert "a.php" in prompts[0]
    assert "tmp.log" in prompts[0]


def test_drop_without_confirm_callback_is_cancelled(repo, runner):
    runner.on("git", "status", "--porcelain", output=" M a.php")
    assert git_ops.drop_changes(repo, runner).outcome == Outcome.CANCELLED


def test_drop_clean_repo_reports_no_changes(repo, runner):
    result = git_ops.drop_changes(repo, runner, force=True)
    assert result.success
    assert result.state == "no_changes"
    assert not runner.ran("git", "reset")


def test_drop_forced(repo, runner):
    runner.on("git", "status", "--porcelain", output=" M a.php")

    result = git_ops.drop_changes(repo, runner, force=True)

    assert result.state == "dropped"
    assert ("git", "reset", "--hard", "HEAD") in runner.commands
    assert ("git", "clean", "-fd") in runner.commands


def test_drop_lists_every_untracked_file(repo, runner):
    runner.on("git", "status", "--porcelain", output="?? build/a.log\n?? build/b.log")
    prompts = []

    git_ops.drop_changes(repo, runner, confirm=lambda text: prompts.append(text) or False)

    assert runner.commands[0] == ("git", "status", "--porcelain", "--untracked-files=all")
    assert "build/a.log" in prompts[0]
    assert "build/b.log" in prompts[0]


def test_stash_save_clean_and_dirty(repo, runner):
    assert git_ops.stash_save(repo, runner).state == "no_changes"
    assert not runner.ran("git", "stash")

    runner.on("git", "status", "--porcelain", output=" M a.php")
    result = git_ops.stash_save(repo, runner, now=NOW)

    assert result.state == "saved"
    assert result.details["message"]
    assert ("git", "stash", "push", "-m", result.details["message"]) in runner.commands


def test_stash_pop_empty_stash_is_success(repo, runner):
    runner.on("git", "stash", "pop", error="No stash entries found.")
    assert git_ops.stash_pop(repo, runner).state == "nothing_to_pop"


def test_stash_pop_conflict_is_failure(repo, runner):
    runner.on("git", "stash", "pop", error="CONFLICT (content): Merge conflict in a.php")
    assert git_ops.stash_pop(repo, runner).outcome == Outcome.COMMAND_FAILED


def test_stash_list_verbose(repo, runner):
    runner.on("git", "stash", "list", output="stash@{0}: On dev: wip\nstash@{1}: On dev: older")

    assert git_ops.stash_list(repo, runner).details == {"count": 2}
    assert git_ops.stash_list(repo, runner, verbose=True).details["entries"] == [
        "stash@{0}: On dev: wip",
        "stash@{1}: On dev: older",
    ]


def test_search_no_match_is_empty_success(repo, runner):
    runner.on("git", "grep", error="", returncode=1)
    result = git_ops.search_repository(repo, runner, "needle", include="*.php")
    assert result.success
    assert result.details["matches"] == []
    assert runner.commands[0][-2:] == ("--", "*.php")


def test_recent_commits(repo, runner):
    runner.on("git", "log", output="abc|Jane|1 day ago|Fix")
    result = git_ops.recent_commits(repo, runner, days=3, count=5)
    assert result.details["commits"][0]["subject"] == "Fix"
    assert "--since=3 days ago" in runner.commands[0]


def test_create_branch_new(repo, runner):
    result = git_ops.create_branch(repo, runner, "1234")

    assert result.state == "new"
    assert result.branch == "REN-1234"
    assert ("git", "checkout", "dev") in runner.commands
    assert ("git", "checkout", "-b", "REN-1234") in runner.commands


def test_create_branch_existing(repo, runner):
    runner.on("git", "checkout", "-b", error="fatal: a branch named 'REN-1234' already exists", returncode=128)

    result = git_ops.create_branch(repo, runner, "1234")

    assert result.success
    assert result.state == "existing"
    assert runner.commands[-1] == ("git", "checkout", "REN-1234")
