"""Run one external command against a repository directory.

Every git / package-manager call of the tool goes through
:class:`CommandRunner`. Privileged calls are wrapped in
``sudo -u <service user>`` so files in the shared service checkouts keep
one owner no matter who runs the tool.
"""

import os
import subprocess
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Union

from .errors import CommandError
from .process_control import finish_process, start_process
from ..infra.logger import log_debug

PathLike = Union[str, Path]


class CommandRunner:
    """Blocking command execution: one process per call, no retry, no timeout."""

    def __init__(self, service_user: Optional[str] = None, verbose: bool = False):
        self.service_user = service_user
        self.verbose = verbose

    def build_command(self, argv: Sequence[str], privileged: bool = True) -> List[str]:
        command = [str(part) for part in argv]
        if privileged and self.service_user:
            return ["sudo", "-u", self.service_user] + command
        return command

    def run(
        self,
        cwd: PathLike,
        argv: Sequence[str],
        privileged: bool = True,
        env: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Run ``argv`` in ``cwd`` and return stdout without trailing whitespace.

        Raises:
            CommandError: non-zero exit, or the executable could not be started
        """
        command = self.build_command(argv, privileged=privileged)
        if self.verbose:
            log_debug(f"$ {' '.join(command)}  (in {cwd})")

        process_env = None
        if env:
            process_env = dict(os.environ)
            process_env.update(env)

        try:
            process = start_process(
                command,
                cwd=str(cwd),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                encoding="utf-8",
                errors="replace",
                env=process_env,
            )
        except FileNotFoundError as exc:
            raise CommandError(command, 127, str(exc))

        # On Ctrl-C the process stays registered for terminate_running().
        stdout, stderr = process.communicate()
        finish_process(process)

        stdout = (stdout or "").rstrip()
        stderr = (stderr or "").strip()

        if process.returncode != 0:
            raise CommandError(command, process.returncode, stderr or stdout)

        return stdout
