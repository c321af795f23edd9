"""Repository registry: repo root resolution and service name -> path mapping."""

from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Tuple

from .errors import ServiceNotFoundError
from ..domain.models import RepositoryDescriptor

DEFAULT_REPO_ROOT = "/var/amarki/repository"
REPO_ROOT_ENV = "REPO_MANAGER_ROOT"

# Declaration order is the fan-out order.
DEFAULT_SERVICES: Dict[str, str] = {
    "ads": "microAds",
    "emails": "microEmails",
    "frontend": "microFrontend",
    "images": "microImages",
    "integrations": "microIntegrations",
    "intelligence": "microIntelligence",
    "sms": "microSms",
    "social": "microSocial",
    "templates": "microTemplates",
    "users": "microUsers",
}

Registry = Tuple[RepositoryDescriptor, ...]


def resolve_repo_root(
    cli_override: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
    local_config: Optional[Mapping[str, object]] = None,
    home_config: Optional[Mapping[str, object]] = None,
    secrets: Optional[Mapping[str, str]] = None,
) -> Tuple[Path, str]:
    """Pick the repository root, returning ``(root, source)``.

    Precedence: CLI flag > environment > local config > home config >
    secrets file > built-in default.
    """
    candidates = (
        ("flag", cli_override),
        ("env", (environ or {}).get(REPO_ROOT_ENV)),
        ("local config", (local_config or {}).get("repoRoot")),
        ("home config", (home_config or {}).get("repoRoot")),
        ("secrets file", (secrets or {}).get("REPO_ROOT")),
    )
    for source, value in candidates:
        if isinstance(value, str) and value.strip():
            return Path(value.strip()).expanduser(), source
    return Path(DEFAULT_REPO_ROOT), "default"


def build_registry(root: Path, services: Optional[Mapping[str, str]] = None) -> Registry:
    """Join ``root`` with each service's fixed subdirectory, keeping declaration order."""
    mapping = services if services else DEFAULT_SERVICES
    return tuple(
        RepositoryDescriptor(name=name, path=Path(root) / subdir)
        for name, subdir in mapping.items()
    )


def service_names(registry: Registry) -> Sequence[str]:
    return [repo.name for repo in registry]


def find_repository(registry: Registry, name: str) -> RepositoryDescriptor:
    for repo in registry:
        if repo.name == name:
            return repo
    raise ServiceNotFoundError(name)


def select_repositories(registry: Registry, name: Optional[str] = None) -> Registry:
    """All repositories, or exactly the named one (unknown names raise, never fall back to all)."""
    if name is None:
        return registry
    return (find_repository(registry, name),)
