"""In-memory OAuth token cache backed by the Trakt settings store."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from watchsync.backend.common.logging import get_logger
from watchsync.backend.persistence import TraktSettingsStore
from watchsync.backend.trakt.models import StoredToken

EXPIRY_BUFFER = timedelta(seconds=60)

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenStore:
    """Single source of truth for the current Trakt token.

    The persisted token is read at most once per instance, on the first
    accessor call. The load is single-flight: concurrent first callers wait
    on the same lock and only one of them touches the store.

    Expired tokens are reported as absent. There is no refresh-token
    exchange; callers must run the OAuth flow again.
    """

    def __init__(self, store: TraktSettingsStore, *, clock: Clock = utcnow) -> None:
        self._log = get_logger(__name__)
        self._store = store
        self._clock = clock
        self._token: Optional[StoredToken] = None
        self._loaded = False
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def is_authenticated(self) -> bool:
        return self.get_access_token() is not None

    def get_access_token(self) -> Optional[str]:
        token = self.current()
        if token is None or not token.is_valid(self._clock()):
            return None
        return token.access_token

    def current(self) -> Optional[StoredToken]:
        """Return the cached token, expired or not."""
        self._ensure_loaded()
        return self._token

    def store_token(self, access_token: str, refresh_token: str, expires_in: int) -> StoredToken:
        expires_at = self._clock() + timedelta(seconds=int(expires_in)) - EXPIRY_BUFFER
        token = StoredToken(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=expires_at,
        )
        with self._lock:
            self._store.save_tokens(access_token, refresh_token, expires_at)
            self._token = token
            self._loaded = True

        self._log.info("trakt_token_stored", extra={"expires_at": expires_at.isoformat()})

        return token

    def clear(self) -> None:
        with self._lock:
            self._token = None
            self._loaded = True
            self._store.clear_tokens()

        self._log.info("trakt_token_cleared")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        with self._lock:
            if self._loaded:
                return
            self._token = self._store.get_settings().token()
            self._loaded = True

        self._log.debug("trakt_token_loaded", extra={"present": self._token is not None})
