# Path helpers: config directory, config/secrets files, log and scratch dirs
#
# Main functions:
#   - get_config_dir(): per-user config dir (XDG / APPDATA / Application Support)
#   - get_local_config_path() / get_home_config_path(): JSON config files
#   - get_secrets_path(): KEY=value secrets file (./.env wins over the config dir one)
#   - get_default_log_dir(): where update logs go
#   - get_temp_dir(): scratch files (PR analysis output)

import os
import sys
import tempfile
from pathlib import Path
from typing import Optional

APP_NAME = "repo-manager"
LOCAL_CONFIG_NAME = ".repo-manager.json"
HOME_CONFIG_NAME = "config.json"
SECRETS_FILE_NAME = ".env"


def get_config_dir(ensure: bool = False) -> Path:
    """Per-user config directory for this tool."""
    if os.name == "nt":
        base = os.environ.get("APPDATA") or os.environ.get("LOCALAPPDATA") or str(Path.home())
    elif sys.platform == "darwin":
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    config_dir = Path(base) / APP_NAME
    if ensure:
        config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


def get_local_config_path(cwd: Optional[Path] = None) -> Path:
    return (cwd or Path.cwd()) / LOCAL_CONFIG_NAME


def get_home_config_path() -> Path:
    return get_config_dir() / HOME_CONFIG_NAME


def get_secrets_path(cwd: Optional[Path] = None) -> Path:
    """Project-local ``.env`` if present, otherwise the one in the config dir."""
    local = (cwd or Path.cwd()) / SECRETS_FILE_NAME
    if local.is_file():
        return local
    return get_config_dir() / SECRETS_FILE_NAME


def get_default_log_dir() -> Path:
    return get_config_dir() / "logs"


def get_temp_dir() -> Path:
    """Scratch directory (cross-platform).

    TMP/TEMP first, then the system default.
    """
    temp_dir = os.environ.get('TMP') or os.environ.get('TEMP')
    if temp_dir and Path(temp_dir).exists():
        return Path(temp_dir)
    return Path(tempfile.gettempdir())
