"""Dependency installation after a branch update.

Which PHP / composer binary a service uses is deployment data, so the
table is read from the config file (``dependencies``) and only falls
back to the built-in defaults below.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

from .runner import CommandRunner
from ..domain.models import RepositoryDescriptor
from ..infra.logger import log_info

PHP82_COMPOSER26 = ("/usr/bin/php8.2", "/usr/local/bin/composer26")
PHP81_COMPOSER26 = ("/usr/bin/php8.1", "/usr/local/bin/composer26")
DEFAULT_COMPOSER = ("composer",)


@dataclass(frozen=True)
class DependencyToolchain:
    composer: Tuple[str, ...] = DEFAULT_COMPOSER
    npm: bool = False


DEFAULT_TOOLCHAIN = DependencyToolchain()

DEFAULT_TOOLCHAINS: Dict[str, DependencyToolchain] = {
    "ads": DependencyToolchain(PHP81_COMPOSER26),
    "emails": DependencyToolchain(PHP82_COMPOSER26),
    "frontend": DependencyToolchain(PHP82_COMPOSER26),
    "images": DependencyToolchain(DEFAULT_COMPOSER),
    "integrations": DependencyToolchain(PHP82_COMPOSER26),
    "intelligence": DependencyToolchain(DEFAULT_COMPOSER, npm=True),
    "sms": DependencyToolchain(PHP82_COMPOSER26),
    "social": DependencyToolchain(PHP81_COMPOSER26),
    "templates": DependencyToolchain(PHP82_COMPOSER26),
    "users": DependencyToolchain(DEFAULT_COMPOSER),
}


def parse_toolchains(data: Optional[Mapping[str, object]] = None) -> Dict[str, DependencyToolchain]:
    """Merge the config file's ``dependencies`` object over the defaults.

    Example entry: ``"frontend": {"composer": ["/usr/bin/php8.2", "/usr/local/bin/composer26"], "npm": false}``
    """
    table = dict(DEFAULT_TOOLCHAINS)
    if not data:
        return table
    for service, entry in data.items():
        if not isinstance(entry, Mapping):
            continue
        composer = entry.get("composer", list(DEFAULT_COMPOSER))
        if isinstance(composer, str):
            composer = composer.split()
        table[service] = DependencyToolchain(
            composer=tuple(str(part) for part in composer) or DEFAULT_COMPOSER,
            npm=bool(entry.get("npm", False)),
        )
    return table


def install_dependencies(
    repo: RepositoryDescriptor,
    runner: CommandRunner,
    toolchain: DependencyToolchain = DEFAULT_TOOLCHAIN,
    use_update: bool = False,
) -> List[str]:
    """Run composer (and npm where enabled) in ``repo``; returns the steps that ran.

    Raises:
        CommandError: an installer exited non-zero
    """
    steps: List[str] = []
    repo_path = Path(repo.path)

    if (repo_path / "composer.json").exists():
        action = "update" if use_update else "install"
        log_info(f"Running composer {action}...")
        runner.run(repo_path, list(toolchain.composer) + [action, "--no-interaction"])
        steps.append(f"composer {action}")

    if toolchain.npm and (repo_path / "package.json").exists():
        log_info("Running npm install...")
        runner.run(repo_path, ["npm", "install"])
        steps.append("npm install")

    return steps
