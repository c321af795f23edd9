"""Pure parsers for git / gh text output.

Everything that scrapes command output lives here so it can be tested
with literal fixture strings, without a repository on disk.
"""

import json
import re
from dataclasses import replace
from typing import Any, Dict, List, Optional, Tuple

from .models import PR_STATES, PullRequestRecord, WorkingTreeChanges

REMOTE_PREFIX_PATTERN = re.compile(r"^remotes/[^/]+/")
TICKET_KEY_PATTERN = re.compile(r"(?<![A-Za-z0-9])([A-Za-z]+)-(\d+)(?!\d)")
NO_STASH_SIGNATURE = "no stash entries found"
BRANCH_EXISTS_SIGNATURE = "already exists"


def parse_branch_listing(output: str) -> List[str]:
    """Turn ``git branch -a`` output into unique branch names.

    Marker glyphs and the ``remotes/<remote>/`` prefix are removed, the
    ``HEAD`` pseudo-branch (including ``HEAD -> origin/main``) is dropped,
    and the listing order is kept.
    """
    branches: List[str] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        line = re.sub(r"^[*+]\s*", "", line)
        line = REMOTE_PREFIX_PATTERN.sub("", line)
        if line == "HEAD" or line.startswith("HEAD ->") or line.startswith("(HEAD detached"):
            continue
        if line not in branches:
            branches.append(line)
    return branches


def _porcelain_path(line: str) -> str:
    path = line[3:]
    if " -> " in path:
        path = path.split(" -> ", 1)[1]
    return path.strip().strip('"')


def parse_porcelain_status(output: str) -> WorkingTreeChanges:
    """Split ``git status --porcelain`` (v1) lines into modified / staged / untracked.

    A file with both index and worktree changes appears in both lists.
    """
    modified: List[str] = []
    staged: List[str] = []
    untracked: List[str] = []

    for line in output.splitlines():
        if len(line) < 4:
            continue
        index_flag, worktree_flag = line[0], line[1]
        path = _porcelain_path(line)
        if index_flag == "?" and worktree_flag == "?":
            untracked.append(path)
            continue
        if index_flag not in (" ", "?", "!"):
            staged.append(path)
        if worktree_flag not in (" ", "?", "!"):
            modified.append(path)

    return WorkingTreeChanges(tuple(modified), tuple(staged), tuple(untracked))


def count_porcelain_entries(output: str) -> int:
    return sum(1 for line in output.splitlines() if line.strip())


def parse_ahead_behind(output: str) -> Tuple[int, int]:
    """Parse ``git rev-list --left-right --count HEAD...@{u}`` into ``(ahead, behind)``."""
    parts = output.split()
    if len(parts) != 2:
        return 0, 0
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return 0, 0


def parse_stash_list(output: str) -> List[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def is_no_stash_entries(message: str) -> bool:
    return NO_STASH_SIGNATURE in (message or "").lower()


def is_branch_exists_error(message: str) -> bool:
    return BRANCH_EXISTS_SIGNATURE in (message or "").lower()


def extract_ticket_key(text: str, prefix: Optional[str] = None) -> Optional[str]:
    """Return the first ``PREFIX-123`` style key in ``text`` (upper-cased), or None.

    The prefix match is case-insensitive; when ``prefix`` is given only
    keys with that prefix count.
    """
    for match in TICKET_KEY_PATTERN.finditer(text or ""):
        key_prefix, number = match.group(1), match.group(2)
        if prefix and key_prefix.upper() != prefix.upper():
            continue
        return f"{key_prefix.upper()}-{number}"
    return None


def ticket_branch_name(ticket: str, prefix: str) -> str:
    """``1234`` -> ``REN-1234``; an already prefixed ticket is normalised instead."""
    ticket = ticket.strip()
    existing = extract_ticket_key(ticket, prefix)
    if existing and existing.upper() == ticket.upper():
        return existing
    return f"{prefix}-{ticket}"


def parse_commit_lines(output: str) -> List[Dict[str, str]]:
    """Parse ``git log --pretty=format:%h|%an|%ar|%s`` lines."""
    commits: List[Dict[str, str]] = []
    for line in output.splitlines():
        if not line.strip():
            continue
        parts = line.split("|", 3)
        if len(parts) != 4:
            continue
        commits.append({
            "hash": parts[0],
            "author": parts[1],
            "when": parts[2],
            "subject": parts[3],
        })
    return commits


def parse_grep_output(output: str) -> List[Dict[str, str]]:
    """Parse ``git grep -n`` lines (``path:line:text``)."""
    matches: List[Dict[str, str]] = []
    for line in output.splitlines():
        parts = line.split(":", 2)
        if len(parts) != 3 or not parts[1].isdigit():
            continue
        matches.append({"file": parts[0], "line": parts[1], "text": parts[2].strip()})
    return matches


def parse_branches_file(content: str) -> Dict[str, str]:
    """Parse ``service=branch`` lines; ``#`` comments and blank lines are skipped."""
    mapping: Dict[str, str] = {}
    for line in content.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        service, branch = stripped.split("=", 1)
        service, branch = service.strip(), branch.strip()
        if service and branch:
            mapping[service] = branch
    return mapping


def last_nonempty_line(output: str) -> str:
    for line in reversed(output.splitlines()):
        if line.strip():
            return line.strip()
    return ""


def _login(author: Any) -> str:
    if isinstance(author, dict):
        return str(author.get("login") or author.get("name") or "")
    return str(author or "")


def _count(value: Any) -> int:
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


def parse_pr_list(output: str, service: str) -> List[PullRequestRecord]:
    """Parse ``gh pr list --json number,title,state,url,isDraft,author,createdAt,headRefName``.

    Raises:
        ValueError: output is not a JSON array
    """
    data = json.loads(output or "[]")
    if not isinstance(data, list):
        raise ValueError(f"unexpected gh output: {output[:200]}")

    records: List[PullRequestRecord] = []
    for item in data:
        state = str(item.get("state") or "OPEN").upper()
        records.append(PullRequestRecord(
            service=service,
            number=_count(item.get("number")),
            title=str(item.get("title") or ""),
            state=state if state in PR_STATES else "OPEN",
            url=str(item.get("url") or ""),
            is_draft=bool(item.get("isDraft")),
            author=_login(item.get("author")),
            created_at=str(item.get("createdAt") or ""),
            head_branch=str(item.get("headRefName") or ""),
        ))
    return records


def apply_pr_details(record: PullRequestRecord, output: str) -> PullRequestRecord:
    """Merge ``gh pr view --json additions,deletions,changedFiles,reviews,body`` into a record."""
    data = json.loads(output or "{}")
    if not isinstance(data, dict):
        raise ValueError(f"unexpected gh output: {output[:200]}")
    reviews = data.get("reviews") or []
    return replace(
        record,
        files_changed=_count(data.get("changedFiles")),
        additions=_count(data.get("additions")),
        deletions=_count(data.get("deletions")),
        body=str(data.get("body") or ""),
        review_states=tuple(str(r.get("state") or "") for r in reviews if isinstance(r, dict)),
    )
