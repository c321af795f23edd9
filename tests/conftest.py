from pathlib import Path
import sys

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


from repo_manager.core.errors import CommandError  # noqa: E402
from repo_manager.domain.models import RepositoryDescriptor  # noqa: E402


class FakeRunner:
    """Records every command; answers from rules matched on an argv prefix.

    Rules are checked newest first, so a test can override a default
    answer by registering a more specific one later.
    """

    def __init__(self, service_user=None):
        self.service_user = service_user
        self.verbose = False
        self.calls = []
        self._rules = []

    def on(self, *prefix, output="", error=None, returncode=1):
        self._rules.insert(0, (tuple(prefix), output, error, returncode))
        return self

    def run(self, cwd, argv, privileged=True, env=None):
        argv = tuple(str(part) for part in argv)
        self.calls.append({"cwd": Path(cwd), "argv": argv, "privileged": privileged, "env": env})
        for prefix, output, error, returncode in self._rules:
            if argv[:len(prefix)] == prefix:
                if error is not None:
                    raise CommandError(list(argv), returncode, error)
                return output
        return ""

    @property
    def commands(self):
        return [call["argv"] for call in self.calls]

    def ran(self, *prefix):
        return any(argv[:len(prefix)] == prefix for argv in self.commands)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "microUsers"
    path.mkdir()
    return RepositoryDescriptor("users", path)


@pytest.fixture
def missing_repo(tmp_path):
    return RepositoryDescriptor("ghost", tmp_path / "does-not-exist")


@pytest.fixture(autouse=True)
def _reset_log_callback():
    from repo_manager.infra.logger import get_log_state, set_log_callback

    state = get_log_state()
    yield
    set_log_callback(*state)


@pytest.fixture
def log_lines():
    from repo_manager.infra.logger import set_log_callback

    lines = []
    set_log_callback(lambda level, message: lines.append((level, message)), log_to_stdout=False, log_to_stderr=False)
    return lines
