from __future__ import annotations

import socket
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter

from watchsync.backend.common.errors import NetworkError
from watchsync.backend.common.logging import get_logger
from watchsync.backend.network_handlers.url_manager import URLManager

log = get_logger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


# ---------------- Exceptions ----------------

class RequestTimeout(NetworkError): ...
class DNSFailure(NetworkError): ...
class ConnectionFailed(NetworkError): ...


# ---------------- Main Session ----------------

class HttpSession:
    """
    Central HTTP transport:
      - URL building + per-service headers via URLManager
      - Fixed transport timeout (30 s unless configured)
      - Transport failures mapped to typed NetworkError subclasses

    Status codes are returned untouched; retry and status policy belong to
    the caller.
    """

    def __init__(self, timeout: Optional[float] = None, *, urlm: Optional[URLManager] = None):
        self.urlm = urlm or URLManager()
        self.timeout = timeout

        self._session = requests.Session()
        self._session.mount("http://", HTTPAdapter(pool_connections=4, pool_maxsize=8))
        self._session.mount("https://", HTTPAdapter(pool_connections=4, pool_maxsize=8))

    # -------- public API --------

    def get(
        self,
        service: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:

        return self._request("GET", service, path, params=params, headers=headers)

    def post(
        self,
        service: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:

        return self._request(
            "POST",
            service,
            path,
            params=params,
            json_body=json_body,
            headers=headers,
        )

    def close(self) -> None:
        self._session.close()

    # -------- internals --------

    def _resolve_timeout(self, service: str) -> float:
        if self.timeout is not None:
            return float(self.timeout)
        configured = self.urlm.rate_limits(service).get("timeout_seconds")
        try:
            return float(configured) if configured is not None else DEFAULT_TIMEOUT_SECONDS
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_SECONDS

    def _request(
        self,
        method: str,
        service: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]],
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> requests.Response:

        url, base_headers = self.urlm.build(service, path, params)
        hdrs = dict(base_headers or {})
        if headers:
            hdrs.update(headers)

        try:
            resp = self._session.request(
                method=method,
                url=url,
                headers=hdrs,
                json=json_body,
                timeout=self._resolve_timeout(service),
            )
        except requests.exceptions.Timeout as e:
            raise RequestTimeout(f"Network error: {e}") from e
        except requests.exceptions.ConnectionError as e:
            if isinstance(getattr(e, "__cause__", None), socket.gaierror):
                raise DNSFailure(f"Network error: {e}") from e
            raise ConnectionFailed(f"Network error: {e}") from e
        except requests.exceptions.RequestException as e:
            raise NetworkError(f"Network error: {e}") from e

        log.debug(
            "http_response",
            extra={"service": service, "method": method, "path": path, "status": resp.status_code},
        )

        return resp
