"""Persistence contract and SQLite-backed helpers."""

from .base import TraktSettingsStore
from .sqlite import (
    SqliteTraktSettingsStore,
    connect,
    connection,
    delete_setting,
    get_setting,
    migrate,
    set_setting,
)

__all__ = [
    "SqliteTraktSettingsStore",
    "TraktSettingsStore",
    "connect",
    "connection",
    "delete_setting",
    "get_setting",
    "migrate",
    "set_setting",
]
