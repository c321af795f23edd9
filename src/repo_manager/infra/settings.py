"""Startup configuration: one immutable AppConfig built from flags, env and files."""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from .. import __version__
from ..core.dependencies import DependencyToolchain, parse_toolchains
from ..core.errors import ConfigError
from ..core.registry import Registry, build_registry, resolve_repo_root
from . import paths
from .secrets import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_MAX_TOKENS,
    ANTHROPIC_MODEL,
    GITHUB_TOKEN,
    load_credential,
    read_secrets,
)

LOG_DIR_ENV = "REPO_MANAGER_LOG_DIR"
DEFAULT_SERVICE_USER = "www-data"
DEFAULT_TICKET_PREFIX = "REN"
DEFAULT_BASE_BRANCH = "dev"
DEFAULT_PROTECTED_BRANCHES = ("main", "master")
DEFAULT_PR_LIMIT = 30
DEFAULT_AI_MODEL = "claude-3-sonnet-20240229"
DEFAULT_AI_MAX_TOKENS = 4096


@dataclass(frozen=True)
class AISettings:
    api_key: Optional[str] = None
    model: str = DEFAULT_AI_MODEL
    max_tokens: int = DEFAULT_AI_MAX_TOKENS

    @property
    def configured(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class AppConfig:
    """Everything an operation needs to know, passed explicitly."""

    repo_root: Path
    root_source: str
    registry: Registry
    verbose: bool = False
    service_user: Optional[str] = DEFAULT_SERVICE_USER
    log_dir: Path = field(default_factory=paths.get_default_log_dir)
    ticket_prefix: str = DEFAULT_TICKET_PREFIX
    base_branch: str = DEFAULT_BASE_BRANCH
    protected_branches: Tuple[str, ...] = DEFAULT_PROTECTED_BRANCHES
    dependencies: Mapping[str, DependencyToolchain] = field(default_factory=parse_toolchains)
    pr_limit: int = DEFAULT_PR_LIMIT
    github_token: Optional[str] = None
    ai: AISettings = AISettings()
    secrets_path: Path = field(default_factory=paths.get_secrets_path)


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a JSON config file; a missing file reads as empty."""
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigError(f"Failed to read config file {path}: {exc}")
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object")
    return data


def write_config_file(path: Path, repo_root: str, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Write ``{repoRoot, created, version}``, keeping any other keys already in the file."""
    data = load_config_file(path)
    data["repoRoot"] = repo_root
    data["created"] = (now or datetime.now()).isoformat()
    data["version"] = __version__
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to write config file {path}: {exc}")
    return data


def _int_setting(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value else default
    except ValueError:
        return default


def load_ai_settings(secrets_path: Path, environ: Mapping[str, str], use_keyring: bool = True) -> AISettings:
    api_key, _ = load_credential(ANTHROPIC_API_KEY, secrets_path, environ, use_keyring=use_keyring)
    secrets = read_secrets(secrets_path)
    model = environ.get(ANTHROPIC_MODEL) or secrets.get(ANTHROPIC_MODEL) or DEFAULT_AI_MODEL
    max_tokens = _int_setting(
        environ.get(ANTHROPIC_MAX_TOKENS) or secrets.get(ANTHROPIC_MAX_TOKENS),
        DEFAULT_AI_MAX_TOKENS,
    )
    return AISettings(api_key=api_key, model=model, max_tokens=max_tokens)


def build_app_config(
    repo_root_override: Optional[str] = None,
    verbose: bool = False,
    environ: Optional[Mapping[str, str]] = None,
    cwd: Optional[Path] = None,
    use_keyring: bool = True,
) -> AppConfig:
    """Resolve every setting once at startup."""
    env = os.environ if environ is None else environ
    local_config = load_config_file(paths.get_local_config_path(cwd))
    home_config = load_config_file(paths.get_home_config_path())
    secrets_path = paths.get_secrets_path(cwd)
    secrets = read_secrets(secrets_path)

    repo_root, root_source = resolve_repo_root(
        repo_root_override,
        environ=env,
        local_config=local_config,
        home_config=home_config,
        secrets=secrets,
    )

    merged: Dict[str, Any] = dict(home_config)
    merged.update(local_config)

    services = merged.get("services")
    registry = build_registry(repo_root, services if isinstance(services, dict) else None)

    log_dir = env.get(LOG_DIR_ENV) or merged.get("logDir")
    service_user = merged.get("serviceUser", DEFAULT_SERVICE_USER)
    protected = merged.get("protectedBranches") or DEFAULT_PROTECTED_BRANCHES
    if isinstance(protected, str):
        protected = (protected,)
    token, _ = load_credential(GITHUB_TOKEN, secrets_path, env, use_keyring=use_keyring)

    return AppConfig(
        repo_root=repo_root,
        root_source=root_source,
        registry=registry,
        verbose=verbose,
        service_user=service_user or None,
        log_dir=Path(log_dir).expanduser() if log_dir else paths.get_default_log_dir(),
        ticket_prefix=str(merged.get("ticketPrefix") or DEFAULT_TICKET_PREFIX),
        base_branch=str(merged.get("baseBranch") or DEFAULT_BASE_BRANCH),
        protected_branches=tuple(protected),
        dependencies=parse_toolchains(merged.get("dependencies")),
        pr_limit=_int_setting(str(merged.get("prLimit") or ""), DEFAULT_PR_LIMIT),
        github_token=token or env.get("GH_TOKEN"),
        ai=load_ai_settings(secrets_path, env, use_keyring=use_keyring),
        secrets_path=secrets_path,
    )
