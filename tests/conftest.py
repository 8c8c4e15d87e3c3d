from __future__ import annotations

from typing import List

import pytest

from watchsync.backend.network_handlers.rate_limiter import RateLimiter
from watchsync.backend.trakt.gateway import TraktGateway
from watchsync.backend.trakt.history import TraktHistoryFetcher
from watchsync.backend.trakt.oauth import TraktOAuthFlow
from watchsync.backend.trakt.sync import TraktSyncService
from watchsync.backend.trakt.tokens import TokenStore

from .fakes import CREDENTIALS, FakeClock, FakeSession, MemoryStore, authenticated_settings


@pytest.fixture(autouse=True)
def isolated_database(tmp_path, monkeypatch):
    monkeypatch.setenv("WATCHSYNC_DATABASE", str(tmp_path / "watchsync.db"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> MemoryStore:
    return MemoryStore(authenticated_settings(), clock)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def tokens(store, clock) -> TokenStore:
    return TokenStore(store, clock=clock)


@pytest.fixture
def gateway(tokens, session, sleeps) -> TraktGateway:
    return TraktGateway(
        tokens,
        RateLimiter(0),
        session=session,
        credentials=lambda: dict(CREDENTIALS),
        retry_after=2.0,
        sleep=sleeps.append,
    )


@pytest.fixture
def oauth(gateway, tokens) -> TraktOAuthFlow:
    return TraktOAuthFlow(gateway, tokens)


@pytest.fixture
def fetcher(gateway) -> TraktHistoryFetcher:
    return TraktHistoryFetcher(gateway)


@pytest.fixture
def sync_service(fetcher, tokens, store) -> TraktSyncService:
    return TraktSyncService(fetcher, tokens, store)
