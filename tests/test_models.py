from pathlib import Path

import pytest

from repo_manager.domain.models import (
    BatchSummary,
    OperationResult,
    Outcome,
    RepositoryStatus,
    WorkingTreeChanges,
)


@pytest.mark.parametrize(
    "uncommitted,ahead,behind,clean",
    [
        (0, 0, 0, True),
        (1, 0, 0, False),
        (0, 2, 0, False),
        (0, 0, 3, False),
    ],
)
def test_repository_status_is_clean(uncommitted, ahead, behind, clean):
    status = RepositoryStatus(
        service="users",
        branch="dev",
        uncommitted_file_count=uncommitted,
        commits_ahead=ahead,
        commits_behind=behind,
    )
    assert status.is_clean is clean
    assert status.to_dict()["is_clean"] is clean


def test_operation_result_constructors():
    assert OperationResult.not_found("users").error == "Directory not found"
    assert OperationResult.not_found("users").failed

    refused = OperationResult.refused("users", "Branch 'x' does not exist in remote", previous_branch="dev")
    assert refused.outcome == Outcome.REFUSED
    assert refused.failed
    assert refused.details == {"previous_branch": "dev"}

    cancelled = OperationResult.cancelled("users")
    assert not cancelled.success
    assert not cancelled.failed
    assert cancelled.state == "cancelled"


def test_operation_result_details_are_read_only():
    details = {"count": 1}
    result = OperationResult("users", Outcome.SUCCEEDED, details=details)
    details["count"] = 2

    assert result.details == {"count": 1}
    with pytest.raises(TypeError):
        result.details["count"] = 3


def test_operation_result_to_dict_serializes_nested_values():
    changes = WorkingTreeChanges(modified=("a.php",))
    result = OperationResult.succeeded(
        "users",
        state="dropped",
        branch="dev",
        dropped=changes,
        log=Path("/tmp/x.json"),
    )

    data = result.to_dict()

    assert data == {
        "service": "users",
        "success": True,
        "outcome": "succeeded",
        "branch": "dev",
        "state": "dropped",
        "dropped": {"modified": ["a.php"], "staged": [], "untracked": []},
        "log": "/tmp/x.json",
    }


def test_batch_summary_counts_cancelled_as_skipped():
    results = [
        OperationResult.succeeded("a"),
        OperationResult.not_found("b"),
        OperationResult.command_failed("c", "boom"),
        OperationResult.cancelled("d"),
    ]

    summary = BatchSummary.from_results(results)

    assert summary == BatchSummary(total=4, success_count=1, failure_count=2, skipped_count=1)
