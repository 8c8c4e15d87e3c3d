"""Authenticated access to the Trakt REST API."""

from __future__ import annotations

import time
from typing import Any, Callable, Dict, Mapping, Optional

from requests import Response

from watchsync.backend.common.errors import (
    AuthenticationError,
    ConfigurationError,
    NetworkError,
    ProviderError,
    RateLimitError,
)
from watchsync.backend.common.logging import get_logger
from watchsync.backend.network_handlers.rate_limiter import RateLimiter
from watchsync.backend.network_handlers.session import HttpSession
from watchsync.backend.trakt.tokens import TokenStore
from watchsync.config import settings

SERVICE_NAME = "trakt"
DEFAULT_RETRY_AFTER_SECONDS = 2.0

CredentialsProvider = Callable[[], Mapping[str, Optional[str]]]


def _is_success(status: int) -> bool:
    return 200 <= status < 300


class TraktGateway:
    """Executes GET/POST calls against Trakt.

    GETs require a valid token and go through the shared rate limiter. A 429
    is retried exactly once after a fixed pause; a 401 is never retried. It
    drops the stored token, so the user has to reconnect.
    """

    def __init__(
        self,
        tokens: TokenStore,
        rate_limiter: RateLimiter,
        *,
        session: Optional[HttpSession] = None,
        credentials: Optional[CredentialsProvider] = None,
        retry_after: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._log = get_logger(__name__)
        self._tokens = tokens
        self._rate_limiter = rate_limiter
        self._session = session or HttpSession()
        self._credentials = credentials or settings.get_trakt_keys
        self._sleep = sleep
        if retry_after is None:
            configured = self._session.urlm.rate_limits(SERVICE_NAME).get("retry_after_seconds")
            retry_after = float(configured) if configured is not None else DEFAULT_RETRY_AFTER_SECONDS
        self._retry_after = retry_after

    @property
    def tokens(self) -> TokenStore:
        return self._tokens

    @property
    def session(self) -> HttpSession:
        return self._session

    def client_id(self) -> Optional[str]:
        return self._credentials().get("client_id")

    def credentials(self) -> Mapping[str, Optional[str]]:
        return self._credentials()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def authenticated_get(self, endpoint: str, params: Optional[Mapping[str, Any]] = None) -> str:
        client_id = self.client_id()
        if not client_id:
            raise ConfigurationError("TRAKT_CLIENT_ID environment variable is not set")
        access_token = self._tokens.get_access_token()
        if access_token is None:
            raise AuthenticationError("Not authenticated with Trakt. Please connect your account first.")

        headers = {
            "trakt-api-key": client_id,
            "Authorization": f"Bearer {access_token}",
        }
        query = dict(params or {})

        self._rate_limiter.wait_for_slot()
        response = self._send_get(endpoint, query, headers)
        status = response.status_code

        if status == 200:
            return response.text
        if status == 401:
            self._log.warning("trakt_unauthorized", extra={"endpoint": endpoint})
            # revoked or expired server side; a new OAuth exchange is required
            self._tokens.clear()
            raise AuthenticationError("Trakt authentication expired. Please reconnect your account.")
        if status == 429:
            self._log.warning(
                "trakt_rate_limited_retry",
                extra={"endpoint": endpoint, "retry_after": self._retry_after},
            )
            self._sleep(self._retry_after)
            retry = self._send_get(endpoint, query, headers)
            if _is_success(retry.status_code):
                return retry.text
            raise RateLimitError("Trakt API rate limited")

        raise ProviderError(status, response.text)

    def post_request(self, endpoint: str, body: Mapping[str, Any]) -> str:
        headers: Dict[str, str] = {}
        client_id = self.client_id()
        if client_id:
            headers["trakt-api-key"] = client_id

        response = self._session.post(
            SERVICE_NAME,
            endpoint,
            json_body=dict(body),
            headers=self._with_user_agent(headers),
        )
        if not _is_success(response.status_code):
            raise ProviderError(response.status_code, response.text)

        return response.text

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _send_get(self, endpoint: str, params: Dict[str, Any], headers: Dict[str, str]) -> Response:
        try:
            return self._session.get(
                SERVICE_NAME,
                endpoint,
                params=params or None,
                headers=self._with_user_agent(headers),
            )
        except NetworkError:
            self._log.warning("trakt_network_error", extra={"endpoint": endpoint}, exc_info=True)
            raise

    def _with_user_agent(self, headers: Dict[str, str]) -> Dict[str, str]:
        merged = {"User-Agent": settings.get_settings().user_agent}
        merged.update(headers)
        return merged
