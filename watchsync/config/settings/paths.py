from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any, Dict

from dotenv import load_dotenv

_CONFIG_DIR = Path(__file__).resolve().parent.parent
_PACKAGE_ROOT = _CONFIG_DIR.parent

# .env lives at the project root, next to the package
load_dotenv(_PACKAGE_ROOT.parent / ".env")

_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")

# key -> (environment override, default location)
_PATH_SOURCES = {
    "provider_settings": ("WATCHSYNC_PROVIDER_SETTINGS", _CONFIG_DIR / "providersettings.json"),
    "database": ("WATCHSYNC_DATABASE", _PACKAGE_ROOT / "var" / "watchsync.db"),
}


def expand_env_in_str(value: str) -> str:
    """Expand ``${VAR}`` tokens within a string; unset variables become empty."""

    def _repl(match: re.Match[str]) -> str:
        return os.getenv(match.group(1), "")

    return _ENV_PATTERN.sub(_repl, value)


def expand_env(obj: Any) -> Any:
    """Recursively expand environment variables in nested structures."""
    if isinstance(obj, str):
        return expand_env_in_str(obj)
    if isinstance(obj, list):
        return [expand_env(v) for v in obj]
    if isinstance(obj, dict):
        return {k: expand_env(v) for k, v in obj.items()}

    return obj


def read_json(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def resolve_path(key: str) -> Path:
    env_var, default = _PATH_SOURCES[key]
    override = os.getenv(env_var)
    return Path(override).expanduser().resolve() if override else default


def snapshot_paths() -> Dict[str, str]:
    """Current location of every configured path, for diagnostics."""

    return {key: str(resolve_path(key)) for key in _PATH_SOURCES}


def get_provider_settings_path() -> Path:
    return resolve_path("provider_settings")


def get_database_path() -> Path:
    path = resolve_path("database")
    path.parent.mkdir(parents=True, exist_ok=True)

    return path


__all__ = [
    "expand_env",
    "expand_env_in_str",
    "get_database_path",
    "get_provider_settings_path",
    "read_json",
    "resolve_path",
    "snapshot_paths",
]
