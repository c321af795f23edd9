import json

import pytest

from repo_manager.domain.models import PullRequestRecord
from repo_manager.domain.parsing import (
    apply_pr_details,
    count_porcelain_entries,
    extract_ticket_key,
    is_branch_exists_error,
    is_no_stash_entries,
    last_nonempty_line,
    parse_ahead_behind,
    parse_branch_listing,
    parse_branches_file,
    parse_commit_lines,
    parse_grep_output,
    parse_porcelain_status,
    parse_pr_list,
    ticket_branch_name,
)


def test_parse_branch_listing_strips_markers_and_remote_prefix():
    output = "* main\n  remotes/origin/main\n  remotes/origin/HEAD\n  remotes/origin/dev\n"
    assert parse_branch_listing(output) == ["main", "dev"]


def test_parse_branch_listing_drops_head_pointer_and_detached_head():
    output = "* (HEAD detached at 1a2b3c)\n  feature\n  remotes/origin/HEAD -> origin/main\n  remotes/upstream/feature\n"
    assert parse_branch_listing(output) == ["feature"]


def test_parse_porcelain_status_classifies_entries():
    output = "\n".join([
        " M src/app.php",
        "M  composer.lock",
        "MM both.php",
        "R  old.php -> new.php",
        "?? notes.txt",
    ])

    changes = parse_porcelain_status(output)

    assert changes.modified == ("src/app.php", "both.php")
    assert changes.staged == ("composer.lock", "both.php", "new.php")
    assert changes.untracked == ("notes.txt",)
    assert count_porcelain_entries(output) == 5


def test_parse_porcelain_status_empty():
    changes = parse_porcelain_status("")
    assert changes.is_empty
    assert count_porcelain_entries("") == 0


def test_parse_ahead_behind():
    assert parse_ahead_behind("2\t5") == (2, 5)
    assert parse_ahead_behind("") == (0, 0)
    assert parse_ahead_behind("x y") == (0, 0)


def test_error_signatures():
    assert is_no_stash_entries("No stash entries found.")
    assert not is_no_stash_entries("CONFLICT (content): Merge conflict in a.php")
    assert is_branch_exists_error("fatal: a branch named 'REN-1' already exists")
    assert not is_branch_exists_error("")


@pytest.mark.parametrize(
    "text,prefix,expected",
    [
        ("REN-100: fix login", None, "REN-100"),
        ("feature/ren-42-cleanup", None, "REN-42"),
        ("Bump utf-8 handling for REN-7", "REN", "REN-7"),
        ("Cleanup", None, None),
        ("ABC-12 and REN-3", "REN", "REN-3"),
        ("XREN-5", "REN", None),
    ],
)
def test_extract_ticket_key(text, prefix, expected):
    assert extract_ticket_key(text, prefix) == expected


def test_ticket_branch_name():
    assert ticket_branch_name("1234", "REN") == "REN-1234"
    assert ticket_branch_name("ren-1234", "REN") == "REN-1234"
    assert ticket_branch_name(" 77 ", "ABC") == "ABC-77"


def test_parse_commit_lines_keeps_pipes_in_subject():
    output = "a1b2c3d|Jane Doe|2 days ago|Fix a | b parsing\nbroken line\n"
    assert parse_commit_lines(output) == [
        {"hash": "a1b2c3d", "author": "Jane Doe", "when": "2 days ago", "subject": "Fix a | b parsing"},
    ]


def test_parse_grep_output():
    output = "app/User.php:12:    $token = null;\nBinary file x matches\n"
    assert parse_grep_output(output) == [{"file": "app/User.php", "line": "12", "text": "$token = null;"}]


def test_parse_branches_file_skips_comments_and_blanks():
    content = "# per service branches\n\nusers = REN-1\nads=dev\nbroken line\nsms=\n"
    assert parse_branches_file(content) == {"users": "REN-1", "ads": "dev"}


def test_last_nonempty_line():
    assert last_nonempty_line("Creating pull request...\nhttps://github.com/o/r/pull/5\n\n") == "https://github.com/o/r/pull/5"
    assert last_nonempty_line("") == ""


def test_parse_pr_list():
    output = json.dumps([
        {
            "number": 5,
            "title": "REN-100: fix",
            "state": "OPEN",
            "url": "https://github.com/o/users/pull/5",
            "isDraft": True,
            "author": {"login": "jdoe"},
            "createdAt": "2024-01-02T03:04:05Z",
            "headRefName": "REN-100",
        }
    ])

    records = parse_pr_list(output, "users")

    assert len(records) == 1
    record = records[0]
    assert record.service == "users"
    assert record.number == 5
    assert record.is_draft
    assert record.author == "jdoe"
    assert record.head_branch == "REN-100"


def test_parse_pr_list_rejects_non_list():
    with pytest.raises(ValueError):
        parse_pr_list('{"message": "oops"}', "users")
    with pytest.raises(ValueError):
        parse_pr_list("not json", "users")


def test_apply_pr_details():
    record = PullRequestRecord("users", 5, "REN-100: fix", "OPEN")
    output = json.dumps({
        "additions": 10,
        "deletions": 3,
        "changedFiles": 2,
        "body": "Details",
        "reviews": [{"state": "APPROVED"}, {"state": "COMMENTED"}],
    })

    detailed = apply_pr_details(record, output)

    assert (detailed.files_changed, detailed.additions, detailed.deletions) == (2, 10, 3)
    assert detailed.body == "Details"
    assert detailed.review_states == ("APPROVED", "COMMENTED")
    assert record.files_changed == 0
