"""Application services for PR listing and multi-service ticket review."""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from ..core.fanout import run_across
from ..core.pull_requests import PR_HOST_UNAVAILABLE, PullRequestHost, collect_pull_requests
from ..core.registry import select_repositories
from ..core.runner import CommandRunner
from ..domain.models import OperationResult, PullRequestAggregate, PullRequestRecord
from ..domain.parsing import ticket_branch_name
from ..domain.pr_groups import group_pull_requests, quick_analysis, render_review_prompt
from ..infra import paths
from ..infra.logger import log_error, log_info, log_plain, log_success, log_warning
from ..infra.settings import AppConfig

GITHUB_SETUP_HINT = "Run 'repo-manager setup-github' to see how to install and authenticate gh"


@dataclass(frozen=True)
class ReviewReport:
    ticket_key: str
    results: Sequence[OperationResult]
    aggregate: PullRequestAggregate
    analysis_path: Optional[Path] = None
    analysis_source: str = ""


def records_from(results: Sequence[OperationResult]) -> List[PullRequestRecord]:
    records: List[PullRequestRecord] = []
    for result in results:
        if result.success:
            records.extend(result.details.get("pull_requests", ()))
    return records


def _print_record(record: PullRequestRecord, detailed: bool = False) -> None:
    draft = " [draft]" if record.is_draft else ""
    log_plain(f"  #{record.number} {record.title} ({record.state}{draft})")
    if record.author or record.head_branch:
        log_plain(f"      {record.author} | {record.head_branch}")
    if detailed:
        log_plain(f"      files: {record.files_changed}  +{record.additions} -{record.deletions}")
        if record.review_states:
            log_plain(f"      reviews: {', '.join(record.review_states)}")
    if record.url:
        log_plain(f"      {record.url}")


def _report_failures(results: Sequence[OperationResult]) -> None:
    for result in results:
        if result.failed:
            log_error(f"{result.service}: {result.error}")


def show_pull_requests(
    config: AppConfig,
    runner: CommandRunner,
    host: PullRequestHost,
    state: str = "open",
    service: Optional[str] = None,
) -> List[OperationResult]:
    """List PRs of the selected services grouped by ticket key (``prs`` command)."""
    if not host.available:
        log_warning(PR_HOST_UNAVAILABLE)
        log_info(GITHUB_SETUP_HINT)
        return []

    repositories = select_repositories(config.registry, service)
    results = run_across(
        repositories,
        lambda repo: collect_pull_requests(repo, runner, host, state=state, limit=config.pr_limit),
    )

    for result in results:
        if result.success:
            log_info(f"{result.service}: {len(result.details.get('pull_requests', ()))} pull request(s)")
    _report_failures(results)

    records = records_from(results)
    if records:
        _print_aggregate(f"{state.capitalize()} pull requests", group_pull_requests(records, config.ticket_prefix))
    else:
        log_info(f"No {state} pull requests found")
    return results


def _print_aggregate(title: str, aggregate: PullRequestAggregate, detailed: bool = False) -> None:
    log_plain()
    log_info(f"========== {title} ==========")
    for group in aggregate.groups:
        flag = " [multi-service]" if group.is_multi_service else ""
        log_plain(f"{group.key}{flag}: {', '.join(group.services)}")
        for record in group.records:
            log_plain(f" {record.service}")
            _print_record(record, detailed)
    if aggregate.ungrouped:
        log_plain("Ungrouped (no ticket key):")
    for record in aggregate.ungrouped:
        log_plain(f" {record.service}")
        _print_record(record, detailed)
    log_info(
        f"Total: {aggregate.record_count} PR(s), {aggregate.total_files} files, "
        f"+{aggregate.total_additions} -{aggregate.total_deletions}"
    )


def _print_quick_analysis(aggregate: PullRequestAggregate) -> None:
    summary = quick_analysis(aggregate)
    log_plain()
    log_info(f"Scope: {summary.services_affected} services affected")
    log_info(f"Size: {summary.total_changes} total lines changed")
    for warning in summary.warnings:
        log_warning(warning)
    log_plain()
    log_info("Review checklist:")
    for item in summary.checklist:
        log_plain(f"[ ] {item}")


def _write_scratch(path: Path, text: str) -> Optional[Path]:
    try:
        path.write_text(text, encoding="utf-8")
    except OSError as exc:
        log_warning(f"Failed to write {path}: {exc}")
        return None
    return path


def review_ticket(
    config: AppConfig,
    runner: CommandRunner,
    host: PullRequestHost,
    reviewer,
    ticket: str,
    analyze: bool = False,
    temp_dir: Optional[Path] = None,
) -> ReviewReport:
    """Gather every PR of one ticket across services, optionally with an AI analysis.

    The analysis (or, without a usable reviewer, the prompt for manual
    use) is written to ``<temp dir>/pr-analysis-<ticket key>.txt``.
    """
    ticket_key = ticket_branch_name(ticket, config.ticket_prefix).upper()
    if not host.available:
        log_warning(PR_HOST_UNAVAILABLE)
        log_info(GITHUB_SETUP_HINT)
        return ReviewReport(ticket_key, (), PullRequestAggregate())

    log_info(f"Searching pull requests for {ticket_key}...")
    results = run_across(
        config.registry,
        lambda repo: collect_pull_requests(
            repo,
            runner,
            host,
            state="all",
            ticket_key=ticket_key,
            prefix=config.ticket_prefix,
            limit=config.pr_limit,
            with_details=True,
        ),
    )
    _report_failures(results)

    records = records_from(results)
    aggregate = group_pull_requests(records, config.ticket_prefix)
    if not records:
        log_warning(f"No pull requests found for {ticket_key}")
        return ReviewReport(ticket_key, results, aggregate)

    _print_aggregate(f"Pull requests for {ticket_key}", aggregate, detailed=True)
    _print_quick_analysis(aggregate)
    if not analyze:
        return ReviewReport(ticket_key, results, aggregate)

    scratch = (temp_dir or paths.get_temp_dir()) / f"pr-analysis-{ticket_key}.txt"
    prompt = render_review_prompt(ticket_key, records)

    if reviewer.available:
        log_info("Running AI analysis...")
        ok, text, error = reviewer.analyze(prompt)
        if ok:
            written = _write_scratch(scratch, text)
            log_plain()
            log_plain(text)
            if written:
                log_success(f"Analysis saved to: {written}")
            return ReviewReport(ticket_key, results, aggregate, written, "ai")
        log_warning(error)
    else:
        log_warning("AI analysis not configured (run 'repo-manager setup-ai')")

    written = _write_scratch(scratch, prompt)
    if written:
        log_info(f"Review prompt saved to: {written}")
        log_info("Paste its content into your AI assistant for a manual review")
    return ReviewReport(ticket_key, results, aggregate, written, "prompt")
