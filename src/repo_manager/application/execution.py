"""Application services: one flow per CLI command, fanned out over the registry."""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from ..core import git_ops
from ..core.dependencies import DEFAULT_TOOLCHAIN
from ..core.errors import ConfigError
from ..core.fanout import print_batch_summary, run_across, save_update_log
from ..core.pull_requests import PullRequestHost, create_pull_request
from ..core.registry import select_repositories, service_names
from ..core.runner import CommandRunner
from ..domain.models import OperationResult
from ..domain.parsing import parse_branches_file
from ..infra.logger import (
    COLOR_ERROR,
    COLOR_SUCCESS,
    COLOR_WARNING,
    log_error,
    log_info,
    log_plain,
    log_success,
    log_warning,
)
from ..infra.settings import AppConfig

STASH_ACTIONS = ("save", "pop", "list")


def render_branch_table(results: Sequence[OperationResult]) -> List[str]:
    """Padded ``service | branch | error`` rows."""
    name_width = max([len("Service")] + [len(r.service) for r in results])
    branch_width = max([len("Branch")] + [len(r.branch) for r in results])
    rows = [
        f"{'Service'.ljust(name_width)} | {'Branch'.ljust(branch_width)} | Error",
        f"{'-' * name_width}-+-{'-' * branch_width}-+-{'-' * 5}",
    ]
    for result in results:
        rows.append(
            f"{result.service.ljust(name_width)} | {result.branch.ljust(branch_width)} | {result.error}".rstrip()
        )
    return rows


def show_current_branches(config: AppConfig, runner: CommandRunner) -> List[OperationResult]:
    results = run_across(config.registry, lambda repo: git_ops.current_branch(repo, runner))
    for row in render_branch_table(results):
        log_plain(row)
    return results


def show_branches(config: AppConfig, runner: CommandRunner, service: Optional[str] = None) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.list_branches(repo, runner),
    )
    for result in results:
        if not result.success:
            log_error(f"{result.service}: {result.error}")
            continue
        log_info(f"{result.service}:")
        for branch in result.details.get("branches", ()):
            log_plain(f"  {branch}")
    return results


def show_status(config: AppConfig, runner: CommandRunner, service: Optional[str] = None) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.repository_status(repo, runner),
    )
    for result in results:
        if not result.success:
            log_error(f"{result.service}: {result.error}")
            continue
        status = result.details["status"]
        if status.is_clean:
            log_plain(f"✓ {status.service} ({status.branch}): clean", COLOR_SUCCESS)
            continue
        parts = []
        if status.uncommitted_file_count:
            parts.append(f"{status.uncommitted_file_count} uncommitted")
        if status.commits_ahead:
            parts.append(f"{status.commits_ahead} ahead")
        if status.commits_behind:
            parts.append(f"{status.commits_behind} behind")
        if not result.details.get("has_upstream", True):
            parts.append("no upstream")
        log_plain(f"● {status.service} ({status.branch}): {', '.join(parts)}", COLOR_WARNING)
    return results


def show_changes(config: AppConfig, runner: CommandRunner, service: Optional[str] = None) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.working_tree_changes(repo, runner),
    )
    for result in results:
        if not result.success:
            log_error(f"{result.service}: {result.error}")
            continue
        changes = result.details["changes"]
        if changes.is_empty:
            if service:
                log_info(f"{result.service}: no changes")
            continue
        log_info(f"{result.service} ({result.branch}): {changes.total} file(s)")
        for label, files in (("M", changes.modified), ("S", changes.staged), ("?", changes.untracked)):
            for path in files:
                log_plain(f"  {label} {path}")
    return results


def run_drop(
    config: AppConfig,
    runner: CommandRunner,
    service: Optional[str] = None,
    force: bool = False,
    confirm: Optional[git_ops.ConfirmCallback] = None,
) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.drop_changes(repo, runner, force=force, confirm=confirm),
    )
    print_batch_summary("Drop changes", results)
    return results


def run_sync(config: AppConfig, runner: CommandRunner, service: Optional[str] = None) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.sync_repository(repo, runner),
    )
    print_batch_summary("Sync", results)
    return results


def run_search(
    config: AppConfig,
    runner: CommandRunner,
    pattern: str,
    service: Optional[str] = None,
    include: Optional[str] = None,
) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.search_repository(repo, runner, pattern, include=include),
    )
    total = 0
    for result in results:
        if not result.success:
            log_error(f"{result.service}: {result.error}")
            continue
        matches = result.details.get("matches", [])
        if not matches:
            continue
        total += len(matches)
        log_info(f"{result.service}: {len(matches)} match(es)")
        for match in matches:
            log_plain(f"  {match['file']}:{match['line']}: {match['text']}")
    log_info(f"Found {total} match(es) for '{pattern}'")
    return results


def run_recent(
    config: AppConfig,
    runner: CommandRunner,
    service: Optional[str] = None,
    days: int = 7,
    count: int = 10,
) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.recent_commits(repo, runner, days=days, count=count),
    )
    for result in results:
        if not result.success:
            log_error(f"{result.service}: {result.error}")
            continue
        commits = result.details.get("commits", [])
        if not commits:
            continue
        log_info(f"{result.service}:")
        for commit in commits:
            log_plain(f"  {commit['hash']} {commit['subject']} ({commit['author']}, {commit['when']})")
    return results


def run_stash(
    config: AppConfig,
    runner: CommandRunner,
    action: str,
    message: Optional[str] = None,
    service: Optional[str] = None,
) -> List[OperationResult]:
    if action not in STASH_ACTIONS:
        raise ConfigError(f"Unknown stash action '{action}' (expected one of: {', '.join(STASH_ACTIONS)})")

    repositories = select_repositories(config.registry, service)
    if action == "save":
        results = run_across(repositories, lambda repo: git_ops.stash_save(repo, runner, message=message))
        print_batch_summary("Stash save", results)
    elif action == "pop":
        results = run_across(repositories, lambda repo: git_ops.stash_pop(repo, runner))
        print_batch_summary("Stash pop", results)
    else:
        results = run_across(repositories, lambda repo: git_ops.stash_list(repo, runner, verbose=config.verbose))
        for result in results:
            if not result.success:
                log_error(f"{result.service}: {result.error}")
                continue
            log_plain(f"{result.service}: {result.details.get('count', 0)} stash(es)")
            for entry in result.details.get("entries", ()):
                log_plain(f"  {entry}")
    return results


def load_branches_file(path: Path, known_services: Sequence[str]) -> Dict[str, str]:
    """Read a ``service=branch`` file; unknown service names are warned about and ignored."""
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read branches file {path}: {exc}")

    mapping = parse_branches_file(content)
    for name in list(mapping):
        if name not in known_services:
            log_warning(f"Unknown service '{name}' in {path}, ignoring")
            del mapping[name]
    return mapping


def run_update(
    config: AppConfig,
    runner: CommandRunner,
    branch: str,
    service: Optional[str] = None,
    use_composer_update: bool = False,
    skip_deps: bool = False,
    branches_file: Optional[Path] = None,
    now: Optional[datetime] = None,
) -> List[OperationResult]:
    """Move repositories to ``branch`` (or their branches-file entry) and log the batch."""
    now = now or datetime.now()
    overrides: Dict[str, str] = {}
    if branches_file:
        overrides = load_branches_file(branches_file, service_names(config.registry))

    def update(repo) -> OperationResult:
        target = overrides.get(repo.name, branch)
        result = git_ops.update_to_branch(
            repo,
            runner,
            target,
            toolchain=config.dependencies.get(repo.name, DEFAULT_TOOLCHAIN),
            use_composer_update=use_composer_update,
            skip_deps=skip_deps,
            now=now,
        )
        if result.success:
            log_success(f"{repo.name} updated to {target}")
        else:
            log_error(f"{repo.name}: {result.error}")
        return result

    results = run_across(select_repositories(config.registry, service), update)
    print_batch_summary("Update", results)
    save_update_log(results, config.log_dir, now)
    return results


def run_create(
    config: AppConfig,
    runner: CommandRunner,
    ticket: str,
    service: Optional[str] = None,
) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: git_ops.create_branch(
            repo,
            runner,
            ticket,
            prefix=config.ticket_prefix,
            base_branch=config.base_branch,
        ),
    )
    print_batch_summary("Create branch", results)
    return results


def run_pull_request(
    config: AppConfig,
    runner: CommandRunner,
    host: PullRequestHost,
    title: str,
    body: str = "",
    draft: bool = False,
    service: Optional[str] = None,
) -> List[OperationResult]:
    results = run_across(
        select_repositories(config.registry, service),
        lambda repo: create_pull_request(
            repo,
            runner,
            host,
            title,
            body=body,
            draft=draft,
            protected_branches=config.protected_branches,
        ),
    )
    for result in results:
        if result.success:
            log_plain(f"{result.service}: {result.details.get('url', '')}", COLOR_SUCCESS)
        elif result.failed:
            log_plain(f"{result.service}: {result.error}", COLOR_ERROR)
    print_batch_summary("Pull requests", results)
    return results
