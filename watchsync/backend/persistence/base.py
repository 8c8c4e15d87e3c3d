"""Contract the engine expects from whatever stores Trakt settings."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from watchsync.backend.trakt.models import TraktSettings


@runtime_checkable
class TraktSettingsStore(Protocol):
    def get_settings(self) -> "TraktSettings": ...

    def save_tokens(self, access_token: str, refresh_token: str, expires_at: datetime) -> None: ...

    def clear_tokens(self) -> None: ...

    def update_last_sync(self) -> None: ...
