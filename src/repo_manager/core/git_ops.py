"""Per-repository git operations.

Each operation takes one :class:`RepositoryDescriptor` and a
:class:`CommandRunner`, issues git commands in that checkout and returns an
:class:`OperationResult`. A missing checkout short-circuits to
``NOT_FOUND`` before any command runs; a failing command becomes
``COMMAND_FAILED`` for that repository only.
"""

import functools
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional

from .dependencies import DEFAULT_TOOLCHAIN, DependencyToolchain, install_dependencies
from .errors import CommandError
from .runner import CommandRunner
from ..domain.models import OperationResult, RepositoryDescriptor, RepositoryStatus, WorkingTreeChanges
from ..domain.parsing import (
    count_porcelain_entries,
    is_branch_exists_error,
    is_no_stash_entries,
    parse_ahead_behind,
    parse_branch_listing,
    parse_commit_lines,
    parse_grep_output,
    parse_porcelain_status,
    parse_stash_list,
    ticket_branch_name,
)
from ..infra.logger import log_info, log_warning

LATEST_COMMIT_FORMAT = "--pretty=format:%h - %s (%cr)"
SYNC_DIRTY_REASON = "Uncommitted changes present, commit or stash them first"

ConfirmCallback = Callable[[str], bool]


def repository_operation(func):
    """Shared guard: directory pre-check and CommandError -> COMMAND_FAILED."""

    @functools.wraps(func)
    def wrapper(repo: RepositoryDescriptor, runner: CommandRunner, *args, **kwargs) -> OperationResult:
        if not Path(repo.path).exists():
            return OperationResult.not_found(repo.name)
        try:
            return func(repo, runner, *args, **kwargs)
        except CommandError as exc:
            return OperationResult.command_failed(repo.name, str(exc))

    return wrapper


def git(runner: CommandRunner, repo: RepositoryDescriptor, *args: str) -> str:
    return runner.run(repo.path, ["git"] + list(args))


def _timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).isoformat(timespec="seconds")


def _active_branch(runner: CommandRunner, repo: RepositoryDescriptor) -> str:
    return git(runner, repo, "rev-parse", "--abbrev-ref", "HEAD")


def _latest_commit(runner: CommandRunner, repo: RepositoryDescriptor) -> str:
    return git(runner, repo, "log", "-1", LATEST_COMMIT_FORMAT)


def _tracked_changes(runner: CommandRunner, repo: RepositoryDescriptor) -> WorkingTreeChanges:
    return parse_porcelain_status(git(runner, repo, "status", "--porcelain", "--untracked-files=no"))


def _has_uncommitted_changes(runner: CommandRunner, repo: RepositoryDescriptor) -> bool:
    """``git diff-index --quiet`` exits 1 when tracked files differ from HEAD."""
    try:
        git(runner, repo, "diff-index", "--quiet", "HEAD", "--")
    except CommandError as exc:
        if exc.returncode == 1:
            return True
        raise
    return False


@repository_operation
def current_branch(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    return OperationResult.succeeded(repo.name, branch=_active_branch(runner, repo))


@repository_operation
def list_branches(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    """Local and remote branch names, refreshed from the remote when possible."""
    try:
        git(runner, repo, "fetch", "--all", "--quiet")
    except CommandError:
        log_warning(f"{repo.name}: fetch failed, listing known branches only")

    branches = parse_branch_listing(git(runner, repo, "branch", "-a"))
    return OperationResult.succeeded(repo.name, branches=branches)


@repository_operation
def repository_status(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    """Uncommitted file count plus ahead/behind against the upstream.

    No upstream counts as ahead=0, behind=0.
    """
    branch = _active_branch(runner, repo)
    porcelain = git(runner, repo, "status", "--porcelain")
    changes = parse_porcelain_status(porcelain)

    has_upstream = True
    try:
        ahead, behind = parse_ahead_behind(
            git(runner, repo, "rev-list", "--left-right", "--count", "HEAD...@{u}")
        )
    except CommandError:
        ahead, behind = 0, 0
        has_upstream = False

    status = RepositoryStatus(
        service=repo.name,
        branch=branch,
        uncommitted_file_count=count_porcelain_entries(porcelain),
        has_unstaged_changes=bool(changes.modified),
        has_staged_changes=bool(changes.staged),
        commits_ahead=ahead,
        commits_behind=behind,
    )
    return OperationResult.succeeded(repo.name, branch=branch, status=status, has_upstream=has_upstream)


@repository_operation
def working_tree_changes(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    branch = _active_branch(runner, repo)
    changes = parse_porcelain_status(git(runner, repo, "status", "--porcelain"))
    return OperationResult.succeeded(
        repo.name,
        state="no_changes" if changes.is_empty else "changed",
        branch=branch,
        changes=changes,
    )


@repository_operation
def update_to_branch(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    branch: str,
    toolchain: DependencyToolchain = DEFAULT_TOOLCHAIN,
    use_composer_update: bool = False,
    skip_deps: bool = False,
    now: Optional[datetime] = None,
) -> OperationResult:
    """Stash if dirty, fetch, verify the remote branch, checkout, pull, install deps."""
    log_info(f"Updating {repo.name} to branch: {branch}")
    previous = _active_branch(runner, repo)
    log_info(f"Current branch: {previous}")

    details = {"previous_branch": previous}

    if _has_uncommitted_changes(runner, repo):
        message = f"Auto-stash before branch update {_timestamp(now)}"
        log_warning("Uncommitted changes detected, stashing...")
        git(runner, repo, "stash", "push", "-m", message)
        details["stashed"] = message

    log_info("Fetching latest changes...")
    git(runner, repo, "fetch")

    try:
        git(runner, repo, "rev-parse", "--verify", "--quiet", f"origin/{branch}")
    except CommandError:
        return OperationResult.refused(
            repo.name,
            f"Branch '{branch}' does not exist in remote",
            **details,
        )

    log_info(f"Checking out branch {branch}...")
    git(runner, repo, "checkout", branch)

    log_info("Pulling latest changes...")
    git(runner, repo, "pull")

    if skip_deps:
        log_warning("Skipping dependency installation")
    else:
        try:
            details["dependencies"] = install_dependencies(repo, runner, toolchain, use_update=use_composer_update)
        except CommandError as exc:
            log_warning(f"Failed to update dependencies: {exc}")
            details["dependency_warning"] = str(exc)

    commit = _latest_commit(runner, repo)
    return OperationResult.succeeded(repo.name, branch=branch, commit=commit, **details)


@repository_operation
def sync_repository(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    """Fetch + pull the current branch; refused while tracked files are modified."""
    branch = _active_branch(runner, repo)
    changes = _tracked_changes(runner, repo)
    if not changes.is_empty:
        return OperationResult.refused(repo.name, SYNC_DIRTY_REASON, branch=branch, files=changes.total)

    git(runner, repo, "fetch")
    git(runner, repo, "pull")
    return OperationResult.succeeded(repo.name, branch=branch, commit=_latest_commit(runner, repo))


def format_drop_prompt(service: str, changes: WorkingTreeChanges) -> str:
    """Text listing exactly what a drop will destroy."""
    lines = [f"The following changes in {service} will be permanently lost:"]
    for label, files in (
        ("Modified", changes.modified),
        ("Staged", changes.staged),
        ("Untracked", changes.untracked),
    ):
        if not files:
            continue
        lines.append(f"  {label} ({len(files)}):")
        lines.extend(f"    {path}" for path in files)
    return "\n".join(lines)


@repository_operation
def drop_changes(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    force: bool = False,
    confirm: Optional[ConfirmCallback] = None,
) -> OperationResult:
    """Hard-reset tracked files and remove untracked ones.

    Without ``force`` the caller's ``confirm(prompt)`` decides; no
    confirmation callback means no.
    """
    changes = parse_porcelain_status(git(runner, repo, "status", "--porcelain", "--untracked-files=all"))
    if changes.is_empty:
        return OperationResult.succeeded(repo.name, state="no_changes")

    if not force:
        if confirm is None or not confirm(format_drop_prompt(repo.name, changes)):
            return OperationResult.cancelled(repo.name)

    git(runner, repo, "reset", "--hard", "HEAD")
    git(runner, repo, "clean", "-fd")
    return OperationResult.succeeded(repo.name, state="dropped", dropped=changes)


@repository_operation
def stash_save(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> OperationResult:
    changes = _tracked_changes(runner, repo)
    if changes.is_empty:
        return OperationResult.succeeded(repo.name, state="no_changes")

    message = message or f"repo-manager stash {_timestamp(now)}"
    git(runner, repo, "stash", "push", "-m", message)
    return OperationResult.succeeded(repo.name, state="saved", message=message, files=changes.total)


@repository_operation
def stash_pop(repo: RepositoryDescriptor, runner: CommandRunner) -> OperationResult:
    """Pop the latest stash; an empty stash is a success, a conflict is not."""
    try:
        git(runner, repo, "stash", "pop")
    except CommandError as exc:
        if is_no_stash_entries(exc.message):
            return OperationResult.succeeded(repo.name, state="nothing_to_pop")
        raise
    return OperationResult.succeeded(repo.name, state="popped")


@repository_operation
def stash_list(repo: RepositoryDescriptor, runner: CommandRunner, verbose: bool = False) -> OperationResult:
    entries = parse_stash_list(git(runner, repo, "stash", "list"))
    if verbose:
        return OperationResult.succeeded(repo.name, state="listed", count=len(entries), entries=entries)
    return OperationResult.succeeded(repo.name, state="listed", count=len(entries))


@repository_operation
def search_repository(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    pattern: str,
    include: Optional[str] = None,
) -> OperationResult:
    """``git grep`` over tracked files; no match is an empty success."""
    args: List[str] = ["grep", "-n", "-I", "-e", pattern]
    if include:
        args += ["--", include]
    try:
        output = git(runner, repo, *args)
    except CommandError as exc:
        if exc.returncode == 1 and not exc.message:
            output = ""
        else:
            raise
    return OperationResult.succeeded(repo.name, matches=parse_grep_output(output))


@repository_operation
def recent_commits(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    days: int = 7,
    count: int = 10,
) -> OperationResult:
    output = git(
        runner,
        repo,
        "log",
        f"--since={days} days ago",
        "-n",
        str(count),
        "--pretty=format:%h|%an|%ar|%s",
    )
    return OperationResult.succeeded(repo.name, commits=parse_commit_lines(output))


@repository_operation
def create_branch(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    ticket: str,
    prefix: str = "REN",
    base_branch: str = "dev",
) -> OperationResult:
    """Create ``<prefix>-<ticket>`` from a freshly pulled base; reuse it if it exists."""
    branch = ticket_branch_name(ticket, prefix)
    log_info(f"Current branch: {_active_branch(runner, repo)}")

    log_info("Fetching latest changes...")
    git(runner, repo, "fetch")
    log_info(f"Checking out {base_branch} branch...")
    git(runner, repo, "checkout", base_branch)
    log_info(f"Pulling latest {base_branch} changes...")
    git(runner, repo, "pull")

    log_info(f"Creating branch {branch}...")
    try:
        git(runner, repo, "checkout", "-b", branch)
    except CommandError as exc:
        if not is_branch_exists_error(exc.message):
            raise
        log_warning(f"Branch {branch} already exists, checking it out...")
        git(runner, repo, "checkout", branch)
        return OperationResult.succeeded(repo.name, state="existing", branch=branch, base=base_branch)

    return OperationResult.succeeded(repo.name, state="new", branch=branch, base=base_branch)
