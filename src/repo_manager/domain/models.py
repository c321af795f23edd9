"""Domain data structures."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class RepositoryDescriptor:
    """One managed service checkout."""

    name: str
    path: Path


class Outcome(str, Enum):
    SUCCEEDED = "succeeded"
    NOT_FOUND = "not_found"
    COMMAND_FAILED = "command_failed"
    REFUSED = "refused"
    CANCELLED = "cancelled"


FAILURE_OUTCOMES = (Outcome.NOT_FOUND, Outcome.COMMAND_FAILED, Outcome.REFUSED)

DIRECTORY_NOT_FOUND = "Directory not found"


def _jsonable(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, Path):
        return str(value)
    return value


@dataclass(frozen=True)
class RepositoryStatus:
    """Working tree and upstream position of one repository."""

    service: str
    branch: str
    uncommitted_file_count: int = 0
    has_unstaged_changes: bool = False
    has_staged_changes: bool = False
    commits_ahead: int = 0
    commits_behind: int = 0

    @property
    def is_clean(self) -> bool:
        return (
            self.uncommitted_file_count == 0
            and self.commits_ahead == 0
            and self.commits_behind == 0
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "branch": self.branch,
            "uncommitted_file_count": self.uncommitted_file_count,
            "has_unstaged_changes": self.has_unstaged_changes,
            "has_staged_changes": self.has_staged_changes,
            "commits_ahead": self.commits_ahead,
            "commits_behind": self.commits_behind,
            "is_clean": self.is_clean,
        }


@dataclass(frozen=True)
class WorkingTreeChanges:
    """Files that a hard reset + clean would throw away."""

    modified: Tuple[str, ...] = ()
    staged: Tuple[str, ...] = ()
    untracked: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.modified) + len(self.staged) + len(self.untracked)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> Dict[str, List[str]]:
        return {
            "modified": list(self.modified),
            "staged": list(self.staged),
            "untracked": list(self.untracked),
        }


@dataclass(frozen=True)
class OperationResult:
    """Outcome of one operation on one repository.

    ``outcome`` is the tag callers switch on; ``state`` names the
    operation-specific variant of a success (``"new"`` / ``"existing"``,
    ``"saved"`` / ``"no_changes"`` ...).
    """

    service: str
    outcome: Outcome
    branch: str = ""
    commit: str = ""
    error: str = ""
    state: str = ""
    details: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "details", MappingProxyType(dict(self.details)))

    @property
    def success(self) -> bool:
        return self.outcome == Outcome.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.outcome in FAILURE_OUTCOMES

    @classmethod
    def succeeded(cls, service: str, state: str = "", branch: str = "", commit: str = "", **details: Any) -> "OperationResult":
        return cls(service, Outcome.SUCCEEDED, branch=branch, commit=commit, state=state, details=details)

    @classmethod
    def not_found(cls, service: str) -> "OperationResult":
        return cls(service, Outcome.NOT_FOUND, error=DIRECTORY_NOT_FOUND)

    @classmethod
    def command_failed(cls, service: str, error: str, **details: Any) -> "OperationResult":
        return cls(service, Outcome.COMMAND_FAILED, error=error, details=details)

    @classmethod
    def refused(cls, service: str, reason: str, branch: str = "", **details: Any) -> "OperationResult":
        return cls(service, Outcome.REFUSED, branch=branch, error=reason, details=details)

    @classmethod
    def cancelled(cls, service: str) -> "OperationResult":
        return cls(service, Outcome.CANCELLED, state="cancelled")

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "service": self.service,
            "success": self.success,
            "outcome": self.outcome.value,
        }
        if self.branch:
            data["branch"] = self.branch
        if self.commit:
            data["commit"] = self.commit
        if self.error:
            data["error"] = self.error
        if self.state:
            data["state"] = self.state
        for key, value in self.details.items():
            data[key] = _jsonable(value)
        return data


@dataclass(frozen=True)
class BatchSummary:
    total: int
    success_count: int
    failure_count: int
    skipped_count: int = 0

    @classmethod
    def from_results(cls, results: Sequence[OperationResult]) -> "BatchSummary":
        return cls(
            total=len(results),
            success_count=sum(1 for r in results if r.success),
            failure_count=sum(1 for r in results if r.failed),
            skipped_count=sum(1 for r in results if r.outcome == Outcome.CANCELLED),
        )


PR_STATES = ("OPEN", "MERGED", "CLOSED")


@dataclass(frozen=True)
class PullRequestRecord:
    """One pull request as reported by the PR host."""

    service: str
    number: int
    title: str
    state: str
    url: str = ""
    is_draft: bool = False
    author: str = ""
    created_at: str = ""
    head_branch: str = ""
    files_changed: int = 0
    additions: int = 0
    deletions: int = 0
    body: str = ""
    review_states: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "number": self.number,
            "title": self.title,
            "state": self.state,
            "url": self.url,
            "is_draft": self.is_draft,
            "author": self.author,
            "created_at": self.created_at,
            "head_branch": self.head_branch,
            "files_changed": self.files_changed,
            "additions": self.additions,
            "deletions": self.deletions,
            "review_states": list(self.review_states),
        }


@dataclass(frozen=True)
class TicketGroup:
    """Pull requests across services that share one ticket key."""

    key: str
    records: Tuple[PullRequestRecord, ...]

    @property
    def services(self) -> List[str]:
        seen: List[str] = []
        for record in self.records:
            if record.service not in seen:
                seen.append(record.service)
        return seen

    @property
    def is_multi_service(self) -> bool:
        return len(self.services) > 1


@dataclass(frozen=True)
class PullRequestAggregate:
    groups: Tuple[TicketGroup, ...] = ()
    ungrouped: Tuple[PullRequestRecord, ...] = ()
    total_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0

    @property
    def record_count(self) -> int:
        return sum(len(group.records) for group in self.groups) + len(self.ungrouped)

    @property
    def total_changes(self) -> int:
        return self.total_additions + self.total_deletions

    @property
    def services(self) -> List[str]:
        seen: List[str] = []
        records = [r for group in self.groups for r in group.records] + list(self.ungrouped)
        for record in records:
            if record.service not in seen:
                seen.append(record.service)
        return seen

    def group(self, key: str) -> Optional[TicketGroup]:
        for group in self.groups:
            if group.key == key.upper():
                return group
        return None


@dataclass(frozen=True)
class QuickAnalysis:
    """Size and scope warnings plus the manual review checklist."""

    services_affected: int
    total_changes: int
    warnings: Tuple[str, ...] = ()
    checklist: Tuple[str, ...] = ()
