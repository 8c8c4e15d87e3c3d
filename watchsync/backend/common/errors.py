from __future__ import annotations

from typing import Optional



class WatchSyncError(Exception):
    """Base for all watchsync exceptions."""


class ConfigurationError(WatchSyncError):
    """Missing or invalid configuration (client id, client secret...)."""


class AuthenticationError(WatchSyncError):
    """No valid token is available, or the provider rejected it."""


class RateLimitError(WatchSyncError):
    """Provider kept throttling after the single retry."""


class ProviderError(WatchSyncError):
    """Provider answered with an unexpected non-2xx status."""

    def __init__(self, status_code: int, body: str = "", message: Optional[str] = None) -> None:
        super().__init__(message or f"Trakt API error: {status_code} - {body}")
        self.status_code = status_code
        self.body = body


class NetworkError(WatchSyncError):
    """Transport level failure (DNS, connection, timeout)."""


class ParseError(WatchSyncError):
    """A response body could not be decoded as a whole."""
