import shutil
import subprocess
import sys

import pytest

from repo_manager.core import git_ops
from repo_manager.core.errors import CommandError
from repo_manager.core.process_control import start_process, terminate_running
from repo_manager.core.runner import CommandRunner
from repo_manager.domain.models import RepositoryDescriptor


def test_build_command_prefixes_service_user():
    runner = CommandRunner(service_user="www-data")
    assert runner.build_command(["git", "pull"]) == ["sudo", "-u", "www-data", "git", "pull"]
    assert runner.build_command(["gh", "pr", "list"], privileged=False) == ["gh", "pr", "list"]
    assert CommandRunner().build_command(["git", "pull"]) == ["git", "pull"]


def test_run_returns_stdout_in_cwd(tmp_path):
    output = CommandRunner().run(tmp_path, [sys.executable, "-c", "import os; print(os.getcwd())\n"])
    assert output == str(tmp_path.resolve()) or output == str(tmp_path)


def test_run_passes_extra_env(tmp_path):
    output = CommandRunner().run(
        tmp_path,
        [sys.executable, "-c", "import os; print(os.environ['GH_TOKEN'])"],
        env={"GH_TOKEN": "ghp_x"},
    )
    assert output == "ghp_x"


def test_run_raises_with_stderr_and_exit_code(tmp_path):
    script = "import sys; sys.stderr.write('fatal: bad things\\n'); sys.exit(3)"

    with pytest.raises(CommandError) as excinfo:
        CommandRunner().run(tmp_path, [sys.executable, "-c", script])

    assert excinfo.value.returncode == 3
    assert excinfo.value.message == "fatal: bad things"
    assert "fatal: bad things" in str(excinfo.value)


def test_run_missing_executable(tmp_path):
    with pytest.raises(CommandError) as excinfo:
        CommandRunner().run(tmp_path, ["definitely-not-a-real-binary-xyz"])
    assert excinfo.value.returncode == 127


def test_run_replaces_undecodable_bytes(tmp_path):
    script = "import sys; sys.stdout.buffer.write(b'caf\\xe9 needle\\n')"
    output = CommandRunner().run(tmp_path, [sys.executable, "-c", script])
    assert output == "caf\ufffd needle"


def test_terminate_running_stops_the_command_in_flight(tmp_path):
    process = start_process([sys.executable, "-c", "import time; time.sleep(30)"], cwd=str(tmp_path))

    assert terminate_running(timeout=5) is True
    assert process.poll() is not None
    assert terminate_running() is False


def test_finished_command_is_not_terminated(tmp_path):
    CommandRunner().run(tmp_path, [sys.executable, "-c", "pass"])
    assert terminate_running() is False


def _git(cwd, *args):
    subprocess.run(
        ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com"] + list(args),
        cwd=str(cwd),
        check=True,
        stdout=subprocess.DEVNULL,
        stderr=subprocess.DEVNULL,
    )


@pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")
def test_latin1_content_in_a_real_repository(tmp_path):
    path = tmp_path / "microLegacy"
    path.mkdir()
    _git(path, "init", "-q")
    (path / "legacy.php").write_bytes(b"// caf\xe9 needle\n")
    (path / "message.txt").write_bytes(b"caf\xe9 fix\n")
    _git(path, "add", "legacy.php")
    _git(path, "commit", "-q", "-F", "message.txt")
    repo = RepositoryDescriptor("legacy", path)

    found = git_ops.search_repository(repo, CommandRunner(), "needle")
    commits = git_ops.recent_commits(repo, CommandRunner())

    assert found.success
    assert found.details["matches"][0]["file"] == "legacy.php"
    assert "needle" in found.details["matches"][0]["text"]
    assert commits.success
    assert commits.details["commits"][0]["subject"].endswith(" fix")
