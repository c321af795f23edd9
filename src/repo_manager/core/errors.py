"""Exception types shared by the runner, registry and front-end."""

from typing import Sequence


class RepoManagerError(Exception):
    """Base class for errors that end a command with exit code 1."""


class ConfigError(RepoManagerError):
    """Config file or secrets file could not be read or written."""


class PrivilegeError(RepoManagerError):
    """A mutating command was started without root while a service user is configured."""


class ServiceNotFoundError(RepoManagerError):
    def __init__(self, name: str):
        super().__init__(f"Service '{name}' not found")
        self.name = name


class CommandError(RepoManagerError):
    """An external command exited non-zero (or could not be started)."""

    def __init__(self, command: Sequence[str], returncode: int, message: str):
        self.command = " ".join(command)
        self.returncode = returncode
        self.message = message
        super().__init__(f"Command failed: {self.command}\n{message}".rstrip())
