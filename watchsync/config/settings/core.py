from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from watchsync import __version__

from .paths import get_database_path

_SETTINGS_LOCK = threading.Lock()
_SETTINGS_SINGLETON: Optional["Settings"] = None


@dataclass
class Settings:
    app_name: str
    env: str
    log_level: str
    database_path: Path
    user_agent: str

    def as_dict(self) -> Dict[str, Any]:
        return {
            "app_name": self.app_name,
            "env": self.env,
            "log_level": self.log_level,
            "database_path": str(self.database_path),
            "user_agent": self.user_agent,
        }


def _build_settings() -> Settings:
    app_name = os.getenv("WATCHSYNC_APP_NAME", "watchsync")
    env = os.getenv("WATCHSYNC_ENV", "development")
    log_level = os.getenv("WATCHSYNC_LOG_LEVEL", "INFO").upper()

    return Settings(
        app_name=app_name,
        env=env,
        log_level=log_level,
        database_path=get_database_path(),
        user_agent=f"{app_name}/{__version__} (Personal Cinema Tracker)",
    )


def get_settings(*, reload: bool = False) -> Settings:
    global _SETTINGS_SINGLETON
    with _SETTINGS_LOCK:
        if _SETTINGS_SINGLETON is None or reload:
            _SETTINGS_SINGLETON = _build_settings()

        return _SETTINGS_SINGLETON


__all__ = [
    "Settings",
    "get_settings",
]
