"""SQLite connection helpers and the Trakt settings store built on them."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Iterator, Optional

from watchsync.backend.common.logging import get_logger
from watchsync.backend.trakt.models import TraktSettings
from watchsync.config.settings import get_database_path

log = get_logger(__name__)

ACCESS_TOKEN_KEY = "trakt.access_token"
REFRESH_TOKEN_KEY = "trakt.refresh_token"
EXPIRES_AT_KEY = "trakt.expires_at"
LAST_SYNC_KEY = "trakt.last_sync_at"
AUTO_SYNC_KEY = "trakt.auto_sync_enabled"

_TOKEN_KEYS = (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, EXPIRES_AT_KEY)


def _resolve_path(path: Optional[Path]) -> Path:
    db_path = Path(path or get_database_path())
    db_path.parent.mkdir(parents=True, exist_ok=True)
    return db_path


def connect(path: Optional[Path] = None, *, apply_migrations: bool = True) -> sqlite3.Connection:
    """Create a SQLite connection and ensure the schema exists."""

    db_path = _resolve_path(path)
    connection = sqlite3.connect(str(db_path))
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA journal_mode = WAL")
    if apply_migrations:
        migrate(connection)
    return connection


@contextmanager
def connection(path: Optional[Path] = None) -> Iterator[sqlite3.Connection]:
    conn = connect(path)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def migrate(connection: sqlite3.Connection) -> None:
    """Create required tables if they are missing."""

    connection.executescript(
        """
        CREATE TABLE IF NOT EXISTS settings (
            k TEXT PRIMARY KEY,
            v TEXT NOT NULL
        );
        """
    )


def get_setting(connection: sqlite3.Connection, key: str) -> Optional[str]:
    row = connection.execute("SELECT v FROM settings WHERE k = ?", (key,)).fetchone()
    return None if row is None else str(row["v"])


def set_setting(connection: sqlite3.Connection, key: str, value: str) -> None:
    connection.execute(
        """
        INSERT INTO settings(k, v) VALUES (?, ?)
        ON CONFLICT(k) DO UPDATE SET v = excluded.v
        """,
        (key, value),
    )


def delete_setting(connection: sqlite3.Connection, key: str) -> None:
    connection.execute("DELETE FROM settings WHERE k = ?", (key,))


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        log.warning("settings_invalid_timestamp", extra={"value": value})
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class SqliteTraktSettingsStore:
    """Trakt settings kept in the key/value ``settings`` table."""

    def __init__(
        self,
        path: Optional[Path] = None,
        *,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._path = path
        self._clock = clock

    def get_settings(self) -> TraktSettings:
        with connection(self._path) as conn:
            auto_sync = get_setting(conn, AUTO_SYNC_KEY)
            return TraktSettings(
                access_token=get_setting(conn, ACCESS_TOKEN_KEY),
                refresh_token=get_setting(conn, REFRESH_TOKEN_KEY),
                expires_at=_parse_timestamp(get_setting(conn, EXPIRES_AT_KEY)),
                last_sync_at=_parse_timestamp(get_setting(conn, LAST_SYNC_KEY)),
                auto_sync_enabled=auto_sync in ("1", "true"),
            )

    def save_tokens(self, access_token: str, refresh_token: str, expires_at: datetime) -> None:
        with connection(self._path) as conn:
            set_setting(conn, ACCESS_TOKEN_KEY, access_token)
            set_setting(conn, REFRESH_TOKEN_KEY, refresh_token)
            set_setting(conn, EXPIRES_AT_KEY, _format_timestamp(expires_at))

    def clear_tokens(self) -> None:
        with connection(self._path) as conn:
            for key in _TOKEN_KEYS:
                delete_setting(conn, key)

    def update_last_sync(self) -> None:
        with connection(self._path) as conn:
            set_setting(conn, LAST_SYNC_KEY, _format_timestamp(self._clock()))

    def set_auto_sync(self, enabled: bool) -> None:
        with connection(self._path) as conn:
            set_setting(conn, AUTO_SYNC_KEY, "1" if enabled else "0")


__all__ = [
    "SqliteTraktSettingsStore",
    "connect",
    "connection",
    "delete_setting",
    "get_setting",
    "migrate",
    "set_setting",
]
