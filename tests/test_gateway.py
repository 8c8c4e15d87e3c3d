import pytest

from watchsync.backend.common.errors import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    ProviderError,
    RateLimitError,
)
from watchsync.backend.network_handlers.rate_limiter import RateLimiter
from watchsync.backend.trakt.gateway import TraktGateway
from watchsync.backend.trakt.models import TraktSettings
from watchsync.backend.trakt.tokens import TokenStore

from .fakes import CREDENTIALS, FakeResponse, MemoryStore


def test_success_returns_body_and_sends_auth_headers(gateway, session):
    session.respond(FakeResponse(200, '[{"a": 1}]'))

    body = gateway.authenticated_get("/sync/ratings", params={"limit": 5})

    assert body == '[{"a": 1}]'
    call = session.calls[0]
    assert call["service"] == "trakt"
    assert call["params"] == {"limit": 5}
    assert call["headers"]["trakt-api-key"] == "cid"
    assert call["headers"]["Authorization"] == "Bearer A"
    assert "Personal Cinema Tracker" in call["headers"]["User-Agent"]


def test_rate_limited_once_then_success(gateway, session, sleeps):
    session.respond(FakeResponse(429, ""), FakeResponse(200, "[]"))

    assert gateway.authenticated_get("/sync/watchlist") == "[]"
    assert sleeps == [2.0]
    assert len(session.calls) == 2


def test_rate_limited_twice_raises(gateway, session, sleeps):
    session.respond(FakeResponse(429, ""), FakeResponse(429, ""))

    with pytest.raises(RateLimitError):
        gateway.authenticated_get("/sync/watchlist")

    assert sleeps == [2.0]
    assert len(session.calls) == 2


def test_retry_failure_with_other_status_is_rate_limit_error(gateway, session):
    session.respond(FakeResponse(429, ""), FakeResponse(500, "boom"))

    with pytest.raises(RateLimitError):
        gateway.authenticated_get("/sync/watchlist")


def test_unauthorized_is_not_retried(gateway, session, sleeps):
    session.respond(FakeResponse(401, "expired"))

    with pytest.raises(AuthenticationError) as excinfo:
        gateway.authenticated_get("/sync/watchlist")

    assert "reconnect" in str(excinfo.value)
    assert sleeps == []
    assert len(session.calls) == 1


def test_unauthorized_clears_stored_token(gateway, session, tokens, store):
    session.respond(FakeResponse(401, "revoked"))

    with pytest.raises(AuthenticationError):
        gateway.authenticated_get("/sync/history/movies")

    assert not tokens.is_authenticated()
    assert tokens.current() is None
    assert store.settings.access_token is None
    assert store.settings.refresh_token is None

    with pytest.raises(AuthenticationError) as excinfo:
        gateway.authenticated_get("/sync/history/movies")

    assert "connect your account first" in str(excinfo.value)
    assert len(session.calls) == 1


def test_other_status_is_provider_error(gateway, session):
    session.respond(FakeResponse(503, "down"))

    with pytest.raises(ProviderError) as excinfo:
        gateway.authenticated_get("/sync/watchlist")

    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "down"
    assert str(excinfo.value) == "Trakt API error: 503 - down"


def test_network_errors_propagate(gateway, session):
    session.respond(NetworkError("Network error: connection refused"))

    with pytest.raises(NetworkError):
        gateway.authenticated_get("/sync/watchlist")


def test_missing_client_id_fails_before_any_request(tokens, session):
    gateway = TraktGateway(tokens, RateLimiter(0), session=session, credentials=lambda: {"client_id": None})

    with pytest.raises(ConfigurationError):
        gateway.authenticated_get("/sync/watchlist")

    assert session.calls == []


def test_missing_token_fails_before_any_request(session, clock):
    tokens = TokenStore(MemoryStore(TraktSettings(), clock), clock=clock)
    gateway = TraktGateway(tokens, RateLimiter(0), session=session, credentials=lambda: dict(CREDENTIALS))

    with pytest.raises(AuthenticationError):
        gateway.authenticated_get("/sync/watchlist")

    assert session.calls == []


def test_every_get_waits_for_a_rate_limiter_slot(tokens, session):
    class CountingLimiter(RateLimiter):
        slots = 0

        def wait_for_slot(self):
            CountingLimiter.slots += 1

    gateway = TraktGateway(tokens, CountingLimiter(0), session=session, credentials=lambda: dict(CREDENTIALS))
    session.respond(FakeResponse(200, "[]"), FakeResponse(200, "[]"))

    gateway.authenticated_get("/sync/watchlist")
    gateway.authenticated_get("/sync/ratings")

    assert CountingLimiter.slots == 2


def test_retry_pause_defaults_to_configured_value(tokens, session):
    gateway = TraktGateway(tokens, RateLimiter(0), session=session, credentials=lambda: dict(CREDENTIALS))

    assert gateway._retry_after == 2.0


def test_post_request_sends_json_and_api_key(gateway, session):
    session.respond(FakeResponse(201, '{"ok": true}'))

    assert gateway.post_request("/oauth/token", {"code": "x"}) == '{"ok": true}'
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["json_body"] == {"code": "x"}
    assert call["headers"]["trakt-api-key"] == "cid"


def test_post_request_non_success_is_provider_error(gateway, session):
    session.respond(FakeResponse(400, "bad code"))

    with pytest.raises(ProviderError) as excinfo:
        gateway.post_request("/oauth/token", {"code": "x"})

    assert excinfo.value.status_code == 400
