# Credential storage: GitHub token, Anthropic API key and friends
#
# Lookup order for a credential:
#   1. environment variable
#   2. system keychain (keyring)
#   3. secrets file (KEY=value lines, read with python-dotenv)
#
# Saving prefers the keychain and falls back to the secrets file.

import os
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import keyring
from dotenv import dotenv_values, set_key, unset_key
from keyring.errors import KeyringError

from ..core.errors import ConfigError

SERVICE_NAME = "repo-manager"

GITHUB_TOKEN = "GITHUB_TOKEN"
ANTHROPIC_API_KEY = "ANTHROPIC_API_KEY"
ANTHROPIC_MODEL = "ANTHROPIC_MODEL"
ANTHROPIC_MAX_TOKENS = "ANTHROPIC_MAX_TOKENS"
REPO_ROOT = "REPO_ROOT"

KEYRING_ERRORS = (KeyringError, RuntimeError, OSError)


def read_secrets(path: Path) -> Dict[str, str]:
    """Read a KEY=value secrets file; a missing file reads as empty."""
    if not path.is_file():
        return {}
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read secrets file {path}: {exc}")
    return {key: value for key, value in values.items() if value is not None}


def write_secret(path: Path, key: str, value: str) -> None:
    """Set ``key`` in the secrets file, creating it (mode 600) when needed."""
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not path.exists():
            path.touch(mode=0o600)
        set_key(str(path), key, value, quote_mode="never")
    except OSError as exc:
        raise ConfigError(f"Failed to write secrets file {path}: {exc}")


def remove_secret(path: Path, key: str) -> None:
    if path.is_file() and key in read_secrets(path):
        unset_key(str(path), key)


def _load_from_keyring(name: str) -> Optional[str]:
    try:
        return keyring.get_password(SERVICE_NAME, name)
    except KEYRING_ERRORS:
        return None


def load_credential(
    name: str,
    secrets_path: Path,
    environ: Optional[Mapping[str, str]] = None,
    use_keyring: bool = True,
) -> Tuple[Optional[str], str]:
    """Return ``(value, source)`` where source is env / keyring / file / none."""
    env = os.environ if environ is None else environ
    value = env.get(name)
    if value:
        return value, "env"

    if use_keyring:
        value = _load_from_keyring(name)
        if value:
            return value, "keyring"

    value = read_secrets(secrets_path).get(name)
    if value:
        return value, "file"
    return None, "none"


def save_credential(name: str, value: str, secrets_path: Path, use_keyring: bool = True) -> str:
    """Store a credential; returns where it went ("keyring" or "file")."""
    if use_keyring:
        try:
            keyring.set_password(SERVICE_NAME, name, value)
            remove_secret(secrets_path, name)
            return "keyring"
        except KEYRING_ERRORS:
            pass
    write_secret(secrets_path, name, value)
    return "file"
