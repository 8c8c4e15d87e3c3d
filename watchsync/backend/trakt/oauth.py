"""Trakt OAuth authorization-code flow."""

from __future__ import annotations

import secrets
from typing import Optional
from urllib.parse import quote, urlencode

from watchsync.backend.common.errors import AuthenticationError, ConfigurationError
from watchsync.backend.common.logging import get_logger
from watchsync.backend.trakt.gateway import SERVICE_NAME, TraktGateway
from watchsync.backend.trakt.models import TraktAuthUrl
from watchsync.backend.trakt.tokens import TokenStore
from watchsync.backend.trakt.wire import decode_token_response
from watchsync.config.settings import OOB_REDIRECT_URI


class TraktOAuthFlow:
    """Builds the authorization URL and trades authorization codes for tokens.

    Issued ``state`` values are not remembered here. Callers that want CSRF
    protection keep the state from :meth:`get_auth_url` and hand it back as
    ``expected_state``.
    """

    def __init__(self, gateway: TraktGateway, tokens: TokenStore) -> None:
        self._log = get_logger(__name__)
        self._gateway = gateway
        self._tokens = tokens

    def get_auth_url(self) -> TraktAuthUrl:
        keys = self._gateway.credentials()
        client_id = keys.get("client_id")
        if not client_id:
            raise ConfigurationError("TRAKT_CLIENT_ID environment variable is not set")

        state = secrets.token_hex(16)
        query = urlencode(
            {
                "response_type": "code",
                "client_id": client_id,
                "redirect_uri": keys.get("redirect_uri") or OOB_REDIRECT_URI,
                "state": state,
            },
            quote_via=quote,
        )
        authorize_url = keys.get("authorize_url") or "https://trakt.tv/oauth/authorize"
        self._log.info("trakt_auth_url_issued")

        return TraktAuthUrl(url=f"{authorize_url}?{query}", state=state)

    def exchange_code(self, code: str, state: str, *, expected_state: Optional[str] = None) -> None:
        """Exchange ``code`` for a token pair and store it.

        Nothing is written to the token store unless the provider answered
        with a complete token payload.
        """

        keys = self._gateway.credentials()
        client_id = keys.get("client_id")
        client_secret = keys.get("client_secret")
        if not client_id:
            raise ConfigurationError("TRAKT_CLIENT_ID environment variable is not set")
        if not client_secret:
            raise ConfigurationError("TRAKT_CLIENT_SECRET environment variable is not set")
        if expected_state is not None and not secrets.compare_digest(state, expected_state):
            raise AuthenticationError("OAuth state mismatch; restart the Trakt authorization")

        body = {
            "code": code,
            "client_id": client_id,
            "client_secret": client_secret,
            "redirect_uri": keys.get("redirect_uri") or OOB_REDIRECT_URI,
            "grant_type": "authorization_code",
        }
        endpoint = self._gateway.session.urlm.endpoint(SERVICE_NAME, "oauth", "token")
        payload = decode_token_response(self._gateway.post_request(endpoint, body))

        self._tokens.store_token(payload.access_token, payload.refresh_token, payload.expires_in)
        self._log.info("trakt_code_exchanged")

    def disconnect(self) -> None:
        self._tokens.clear()
