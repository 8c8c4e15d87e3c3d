from datetime import timedelta
from urllib.parse import parse_qs, urlparse

import pytest

from watchsync.backend.common.errors import AuthenticationError, ConfigurationError, ParseError, ProviderError
from watchsync.backend.network_handlers.rate_limiter import RateLimiter
from watchsync.backend.trakt.gateway import TraktGateway
from watchsync.backend.trakt.models import TraktSettings
from watchsync.backend.trakt.oauth import TraktOAuthFlow
from watchsync.backend.trakt.tokens import TokenStore

from .fakes import CREDENTIALS, NOW, FakeResponse, MemoryStore


@pytest.fixture
def empty_store(clock):
    return MemoryStore(TraktSettings(), clock)


@pytest.fixture
def fresh_tokens(empty_store, clock):
    return TokenStore(empty_store, clock=clock)


def _flow(tokens, session, credentials=None):
    gateway = TraktGateway(
        tokens,
        RateLimiter(0),
        session=session,
        credentials=lambda: dict(credentials if credentials is not None else CREDENTIALS),
    )
    return TraktOAuthFlow(gateway, tokens)


def test_auth_url_contains_client_redirect_and_state(fresh_tokens, session):
    auth = _flow(fresh_tokens, session).get_auth_url()

    parsed = urlparse(auth.url)
    query = parse_qs(parsed.query)
    assert f"{parsed.scheme}://{parsed.netloc}{parsed.path}" == "https://trakt.tv/oauth/authorize"
    assert query["response_type"] == ["code"]
    assert query["client_id"] == ["cid"]
    assert query["redirect_uri"] == ["urn:ietf:wg:oauth:2.0:oob"]
    assert query["state"] == [auth.state]
    assert len(auth.state) == 32
    assert "urn%3Aietf%3Awg%3Aoauth%3A2.0%3Aoob" in auth.url


def test_auth_url_state_is_fresh_each_time(fresh_tokens, session):
    flow = _flow(fresh_tokens, session)

    assert flow.get_auth_url().state != flow.get_auth_url().state


def test_auth_url_requires_client_id(fresh_tokens, session):
    with pytest.raises(ConfigurationError):
        _flow(fresh_tokens, session, {"client_id": None}).get_auth_url()


def test_exchange_code_stores_token(fresh_tokens, empty_store, session):
    session.respond(FakeResponse(200, {"access_token": "A", "refresh_token": "B", "expires_in": 7200}))

    _flow(fresh_tokens, session).exchange_code("abc", "xyz")

    assert fresh_tokens.is_authenticated()
    assert empty_store.settings.expires_at == NOW + timedelta(seconds=7200 - 60)
    call = session.calls[0]
    assert call["path"] == "/oauth/token"
    assert call["json_body"] == {
        "code": "abc",
        "client_id": "cid",
        "client_secret": "secret",
        "redirect_uri": "urn:ietf:wg:oauth:2.0:oob",
        "grant_type": "authorization_code",
    }


def test_exchange_code_with_unparseable_reply_stores_nothing(fresh_tokens, empty_store, session):
    session.respond(FakeResponse(200, {"access_token": "A"}))

    with pytest.raises(ParseError):
        _flow(fresh_tokens, session).exchange_code("abc", "xyz")

    assert empty_store.save_calls == 0
    assert not fresh_tokens.is_authenticated()


def test_exchange_code_provider_rejection(fresh_tokens, empty_store, session):
    session.respond(FakeResponse(401, "invalid_grant"))

    with pytest.raises(ProviderError):
        _flow(fresh_tokens, session).exchange_code("abc", "xyz")

    assert empty_store.save_calls == 0


@pytest.mark.parametrize(
    "credentials",
    [
        {"client_id": None, "client_secret": "secret"},
        {"client_id": "cid", "client_secret": None},
    ],
)
def test_exchange_code_requires_credentials(fresh_tokens, session, credentials):
    with pytest.raises(ConfigurationError):
        _flow(fresh_tokens, session, credentials).exchange_code("abc", "xyz")

    assert session.calls == []


def test_exchange_code_rejects_state_mismatch(fresh_tokens, session):
    with pytest.raises(AuthenticationError):
        _flow(fresh_tokens, session).exchange_code("abc", "xyz", expected_state="other")

    assert session.calls == []


def test_exchange_code_accepts_matching_state(fresh_tokens, session):
    session.respond(FakeResponse(200, {"access_token": "A", "refresh_token": "B", "expires_in": 7200}))

    _flow(fresh_tokens, session).exchange_code("abc", "xyz", expected_state="xyz")

    assert fresh_tokens.is_authenticated()


def test_disconnect_clears_tokens(tokens, store, session):
    assert tokens.is_authenticated()

    _flow(tokens, session).disconnect()

    assert not tokens.is_authenticated()
    assert store.settings.access_token is None
