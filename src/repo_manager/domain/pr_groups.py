"""Grouping of pull requests by ticket key and review prompt rendering."""

import json
from typing import Dict, List, Optional, Sequence

from .models import PullRequestAggregate, PullRequestRecord, QuickAnalysis, TicketGroup
from .parsing import extract_ticket_key

BODY_PREVIEW_LIMIT = 2000
LARGE_CHANGE_THRESHOLD = 500
MULTI_SERVICE_THRESHOLD = 3

LARGE_CHANGE_WARNING = "Large PR - consider breaking into smaller PRs"
MULTI_SERVICE_WARNING = "Multiple services affected - ensure coordinated deployment"

REVIEW_CHECKLIST = (
    "Code follows project style guidelines",
    "Self-review completed",
    "Tests added/updated",
    "Documentation updated",
    "No debug output left in",
    "Security considerations addressed",
    "Performance impact assessed",
    "Breaking changes documented",
)


def ticket_key_for(record: PullRequestRecord, prefix: Optional[str] = None) -> Optional[str]:
    """Ticket key from the title, falling back to the head branch name."""
    return extract_ticket_key(record.title, prefix) or extract_ticket_key(record.head_branch, prefix)


def group_pull_requests(
    records: Sequence[PullRequestRecord],
    prefix: Optional[str] = None,
) -> PullRequestAggregate:
    """Group records by ticket key; records without a key go to ``ungrouped``.

    Groups keep the order in which their first record was seen.
    """
    grouped: Dict[str, List[PullRequestRecord]] = {}
    ungrouped: List[PullRequestRecord] = []

    for record in records:
        key = ticket_key_for(record, prefix)
        if key is None:
            ungrouped.append(record)
            continue
        grouped.setdefault(key, []).append(record)

    return PullRequestAggregate(
        groups=tuple(TicketGroup(key, tuple(items)) for key, items in grouped.items()),
        ungrouped=tuple(ungrouped),
        total_files=sum(r.files_changed for r in records),
        total_additions=sum(r.additions for r in records),
        total_deletions=sum(r.deletions for r in records),
    )


def build_review_payload(records: Sequence[PullRequestRecord]) -> List[Dict[str, object]]:
    """Structured summary handed to the AI reviewer."""
    return [
        {
            "service": record.service,
            "number": record.number,
            "title": record.title,
            "state": record.state,
            "author": record.author,
            "filesChanged": record.files_changed,
            "additions": record.additions,
            "deletions": record.deletions,
            "description": (record.body or "")[:BODY_PREVIEW_LIMIT],
            "url": record.url,
        }
        for record in records
    ]


def render_review_prompt(ticket_key: str, records: Sequence[PullRequestRecord]) -> str:
    """Prompt text usable as-is with any chat assistant."""
    payload = build_review_payload(records)
    services = sorted({record.service for record in records})
    lines = [
        f"Please analyze these pull requests for ticket {ticket_key}.",
        "",
        f"Services affected: {', '.join(services) if services else 'none'}",
        f"Total changes: +{sum(r.additions for r in records)} -{sum(r.deletions for r in records)}"
        f" in {sum(r.files_changed for r in records)} files",
        "",
        json.dumps(payload, indent=2, ensure_ascii=False),
        "",
        "For each service with changes, provide:",
        "1. Overall assessment",
        "2. Potential risks or concerns with severity (Critical/High/Medium/Low)",
        "3. Specific areas needing review",
        "4. Test case suggestions",
        "5. Architecture/design considerations",
        "6. Security audit findings",
        "",
        "End with a summary recommendation: Approve, Request Changes, or Needs Discussion.",
    ]
    return "\n".join(lines) + "\n"


def quick_analysis(aggregate: PullRequestAggregate) -> QuickAnalysis:
    """Scope and size of a ticket's PRs, flagged when either gets too large."""
    services = len(aggregate.services)
    warnings = []
    if aggregate.total_changes > LARGE_CHANGE_THRESHOLD:
        warnings.append(LARGE_CHANGE_WARNING)
    if services > MULTI_SERVICE_THRESHOLD:
        warnings.append(MULTI_SERVICE_WARNING)
    return QuickAnalysis(services, aggregate.total_changes, tuple(warnings), REVIEW_CHECKLIST)
