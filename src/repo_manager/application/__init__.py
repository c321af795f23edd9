"""Application layer: command flows shared by the CLI and the interactive menu."""

from .execution import (
    run_create,
    run_drop,
    run_pull_request,
    run_recent,
    run_search,
    run_stash,
    run_sync,
    run_update,
    show_branches,
    show_changes,
    show_current_branches,
    show_status,
)
from .review import review_ticket, show_pull_requests

__all__ = [
    "review_ticket",
    "run_create",
    "run_drop",
    "run_pull_request",
    "run_recent",
    "run_search",
    "run_stash",
    "run_sync",
    "run_update",
    "show_branches",
    "show_changes",
    "show_current_branches",
    "show_pull_requests",
    "show_status",
]
