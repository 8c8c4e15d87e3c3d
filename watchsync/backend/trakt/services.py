"""Wiring for the Trakt engine: one object graph per process."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from watchsync.backend.network_handlers.rate_limiter import RateLimiter
from watchsync.backend.network_handlers.session import HttpSession
from watchsync.backend.persistence import SqliteTraktSettingsStore, TraktSettingsStore
from watchsync.backend.trakt.gateway import SERVICE_NAME, CredentialsProvider, TraktGateway
from watchsync.backend.trakt.history import TraktHistoryFetcher
from watchsync.backend.trakt.oauth import TraktOAuthFlow
from watchsync.backend.trakt.sync import TraktSyncService
from watchsync.backend.trakt.tokens import Clock, TokenStore, utcnow


@dataclass
class TraktServices:
    store: TraktSettingsStore
    tokens: TokenStore
    rate_limiter: RateLimiter
    gateway: TraktGateway
    oauth: TraktOAuthFlow
    history: TraktHistoryFetcher
    sync: TraktSyncService

    def close(self) -> None:
        self.gateway.session.close()


def create_trakt_services(
    store: Optional[TraktSettingsStore] = None,
    *,
    session: Optional[HttpSession] = None,
    credentials: Optional[CredentialsProvider] = None,
    rate_limiter: Optional[RateLimiter] = None,
    clock: Clock = utcnow,
) -> TraktServices:
    """Build the Trakt object graph. Call once at process start and share it."""

    store = store or SqliteTraktSettingsStore()
    session = session or HttpSession()
    tokens = TokenStore(store, clock=clock)
    limiter = rate_limiter or RateLimiter.from_config(session.urlm.rate_limits(SERVICE_NAME))
    gateway = TraktGateway(tokens, limiter, session=session, credentials=credentials)
    history = TraktHistoryFetcher(gateway)

    return TraktServices(
        store=store,
        tokens=tokens,
        rate_limiter=limiter,
        gateway=gateway,
        oauth=TraktOAuthFlow(gateway, tokens),
        history=history,
        sync=TraktSyncService(history, tokens, store),
    )
