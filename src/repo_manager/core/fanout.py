# Fan-out across repositories
#
# Main functions:
#   - run_across(): apply one operation to every selected repository
#   - print_batch_summary(): per-service ✓/✗ lines plus counts
#   - save_update_log(): write the JSON update log of a batch
#
# Notes:
#   - strictly sequential, registry order
#   - a failure in one repository never stops the batch

import json
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from ..domain.models import BatchSummary, Outcome, OperationResult, RepositoryDescriptor
from ..infra.logger import log_error, log_info, log_plain, log_success, log_warning

Operation = Callable[[RepositoryDescriptor], OperationResult]


def run_across(repositories: Sequence[RepositoryDescriptor], operation: Operation) -> List[OperationResult]:
    """One result per repository, in order, whatever happens inside each call."""
    results: List[OperationResult] = []
    for repo in repositories:
        try:
            result = operation(repo)
        except Exception as exc:
            log_error(f"{repo.name}: unexpected error: {exc}")
            result = OperationResult.command_failed(repo.name, str(exc))
        results.append(result)
    return results


def summarize(results: Sequence[OperationResult]) -> BatchSummary:
    return BatchSummary.from_results(results)


def _result_line(result: OperationResult) -> str:
    if result.success:
        suffix = f" ({result.state})" if result.state else ""
        branch = f" -> {result.branch}" if result.branch else ""
        return f"  ✓ {result.service}{branch}{suffix}"
    if result.outcome == Outcome.CANCELLED:
        return f"  - {result.service}: cancelled"
    return f"  ✗ {result.service}: {result.error}"


def print_batch_summary(title: str, results: Sequence[OperationResult]) -> BatchSummary:
    summary = summarize(results)

    log_plain()
    log_info(f"========== {title} ==========")
    for result in results:
        log_plain(_result_line(result))
    log_info(f"Total: {summary.total}")
    log_success(f"Succeeded: {summary.success_count}")
    if summary.failure_count > 0:
        log_error(f"Failed: {summary.failure_count}")
    else:
        log_info(f"Failed: {summary.failure_count}")
    if summary.skipped_count:
        log_warning(f"Skipped: {summary.skipped_count}")
    return summary


def update_log_name(now: datetime) -> str:
    return f"update-log-{now.isoformat().replace(':', '-')}.json"


def save_update_log(
    results: Sequence[OperationResult],
    log_dir: Path,
    now: Optional[datetime] = None,
) -> Optional[Path]:
    """Write every result of an update batch; a write failure only warns."""
    now = now or datetime.now()
    log_path = Path(log_dir) / update_log_name(now)
    content = json.dumps([result.to_dict() for result in results], ensure_ascii=False, indent=2)

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_path.write_text(content + "\n", encoding="utf-8")
    except OSError as exc:
        log_warning(f"Failed to save update log: {log_path} - {exc}")
        return None

    log_info(f"Update log saved to: {log_path}")
    return log_path
