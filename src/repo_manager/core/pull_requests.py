"""Pull-request hosting through the GitHub CLI (``gh``).

:class:`GhCliHost` is used when the ``gh`` executable is installed;
otherwise :class:`UnavailableHost` keeps the PR commands working with an
empty result and a pointer to ``setup-github``.
"""

import shutil
from typing import Callable, List, Optional, Sequence

from .errors import CommandError
from .git_ops import git, repository_operation
from .runner import CommandRunner
from ..domain.models import OperationResult, PullRequestRecord, RepositoryDescriptor
from ..domain.parsing import apply_pr_details, extract_ticket_key, last_nonempty_line, parse_pr_list
from ..infra.logger import log_info

PR_LIST_FIELDS = "number,title,state,url,isDraft,author,createdAt,headRefName"
PR_DETAIL_FIELDS = "additions,deletions,changedFiles,reviews,body"
PR_HOST_UNAVAILABLE = "GitHub CLI (gh) is not installed; run 'repo-manager setup-github' for instructions"


class PullRequestHost:
    """Capability interface for the PR host."""

    available = False

    def list_pull_requests(
        self,
        repo: RepositoryDescriptor,
        state: str = "open",
        search: Optional[str] = None,
        limit: int = 30,
    ) -> List[PullRequestRecord]:
        raise NotImplementedError

    def fetch_details(self, repo: RepositoryDescriptor, record: PullRequestRecord) -> PullRequestRecord:
        raise NotImplementedError

    def default_branch(self, repo: RepositoryDescriptor) -> str:
        raise NotImplementedError

    def create(
        self,
        repo: RepositoryDescriptor,
        title: str,
        body: str,
        base: str,
        head: str,
        draft: bool = False,
    ) -> str:
        raise NotImplementedError


class UnavailableHost(PullRequestHost):
    """No PR host configured: nothing to list, nothing can be created."""

    def list_pull_requests(self, repo, state="open", search=None, limit=30):
        return []

    def fetch_details(self, repo, record):
        return record

    def default_branch(self, repo):
        return ""

    def create(self, repo, title, body, base, head, draft=False):
        raise CommandError(["gh", "pr", "create"], 127, PR_HOST_UNAVAILABLE)


class GhCliHost(PullRequestHost):
    """``gh`` invoked inside each checkout, as the invoking user."""

    available = True

    def __init__(self, runner: CommandRunner, token: Optional[str] = None):
        self.runner = runner
        self.token = token

    def _gh(self, repo: RepositoryDescriptor, args: Sequence[str]) -> str:
        env = {"GH_TOKEN": self.token} if self.token else None
        return self.runner.run(repo.path, ["gh"] + list(args), privileged=False, env=env)

    def list_pull_requests(self, repo, state="open", search=None, limit=30):
        args = ["pr", "list", "--state", state, "--limit", str(limit), "--json", PR_LIST_FIELDS]
        if search:
            args += ["--search", search]
        return parse_pr_list(self._gh(repo, args), repo.name)

    def fetch_details(self, repo, record):
        output = self._gh(repo, ["pr", "view", str(record.number), "--json", PR_DETAIL_FIELDS])
        return apply_pr_details(record, output)

    def default_branch(self, repo):
        return self._gh(repo, ["repo", "view", "--json", "defaultBranchRef", "--jq", ".defaultBranchRef.name"])

    def create(self, repo, title, body, base, head, draft=False):
        args = ["pr", "create", "--title", title, "--body", body or "", "--head", head]
        if base:
            args += ["--base", base]
        if draft:
            args.append("--draft")
        return last_nonempty_line(self._gh(repo, args))


def select_pr_host(
    runner: CommandRunner,
    token: Optional[str] = None,
    which: Callable[[str], Optional[str]] = shutil.which,
) -> PullRequestHost:
    if which("gh"):
        return GhCliHost(runner, token)
    return UnavailableHost()


@repository_operation
def collect_pull_requests(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    host: PullRequestHost,
    state: str = "open",
    ticket_key: Optional[str] = None,
    prefix: Optional[str] = None,
    limit: int = 30,
    with_details: bool = False,
) -> OperationResult:
    """PRs of one repository; with ``ticket_key`` only PRs whose title or branch carry it."""
    try:
        records = host.list_pull_requests(repo, state=state, search=ticket_key, limit=limit)
        if ticket_key:
            records = [
                record for record in records
                if ticket_key in (
                    extract_ticket_key(record.title, prefix),
                    extract_ticket_key(record.head_branch, prefix),
                )
            ]
        if with_details:
            records = [host.fetch_details(repo, record) for record in records]
    except ValueError as exc:
        return OperationResult.command_failed(repo.name, f"Unreadable gh output: {exc}")

    return OperationResult.succeeded(repo.name, pull_requests=records)


@repository_operation
def create_pull_request(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    host: PullRequestHost,
    title: str,
    body: str = "",
    draft: bool = False,
    protected_branches: Sequence[str] = ("main", "master"),
) -> OperationResult:
    """Push the current branch if it has no upstream yet, then open a PR against the default branch."""
    branch = git(runner, repo, "rev-parse", "--abbrev-ref", "HEAD")
    if branch in protected_branches:
        return OperationResult.refused(repo.name, f"Cannot create PR from default branch '{branch}'", branch=branch)
    if not host.available:
        return OperationResult.refused(repo.name, PR_HOST_UNAVAILABLE, branch=branch)

    pushed = False
    try:
        git(runner, repo, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")
    except CommandError:
        log_info(f"Pushing {branch} to origin...")
        git(runner, repo, "push", "-u", "origin", branch)
        pushed = True

    base = host.default_branch(repo)
    url = host.create(repo, title, body, base, branch, draft=draft)
    return OperationResult.succeeded(repo.name, branch=branch, url=url, base=base, pushed=pushed, draft=draft)
