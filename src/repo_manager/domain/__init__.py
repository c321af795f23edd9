"""Domain models and text parsing logic."""

from .models import (
    BatchSummary,
    OperationResult,
    Outcome,
    PullRequestAggregate,
    PullRequestRecord,
    RepositoryDescriptor,
    RepositoryStatus,
    TicketGroup,
    WorkingTreeChanges,
)
from .pr_groups import build_review_payload, group_pull_requests, render_review_prompt

__all__ = [
    "BatchSummary",
    "OperationResult",
    "Outcome",
    "PullRequestAggregate",
    "PullRequestRecord",
    "RepositoryDescriptor",
    "RepositoryStatus",
    "TicketGroup",
    "WorkingTreeChanges",
    "build_review_payload",
    "group_pull_requests",
    "render_review_prompt",
]
