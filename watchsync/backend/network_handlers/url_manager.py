from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple
from urllib.parse import urlencode, urljoin

from watchsync.config.settings import (
    get_base_url,
    get_default_headers,
    get_provider_endpoints,
    get_rate_limits,
)



# ----------------------------
# Data views (read-only access)
# ----------------------------

@dataclass(frozen=True)
class ServiceView:
    name: str
    base_url: str
    default_headers: Dict[str, str]
    rate_limits: Dict[str, Any]
    endpoints: Dict[str, Any]


# ----------------------------
# URL Manager
# ----------------------------

class URLManager:
    """
    Builds service URLs and injects per-service default headers without doing
    any network I/O. Pure config-driven.

    Views are resolved on every call so that environment-expanded values
    (``${TRAKT_CLIENT_ID}``...) reflect the current process environment.
    """

    def __init__(self, service_overrides: Optional[Dict[str, Dict[str, Any]]] = None):
        self._overrides = dict(service_overrides or {})

    # -------- Public API --------

    def build(self, service: str, path: str, params: Optional[Dict[str, Any]] = None
              ) -> Tuple[str, Dict[str, str]]:
        """
        Build a full URL for an absolute/relative path for a given service.
        Returns (url, headers).
        """
        view = self.view(service)
        headers = dict(view.default_headers or {})

        base = _ensure_trailing_slash(view.base_url)
        url = urljoin(base, path.lstrip("/"))

        if params:
            sep = "&" if "?" in url else "?"
            url = f"{url}{sep}{urlencode(params, doseq=True)}"

        return url, headers

    def endpoint(self, service: str, *keys: str, fmt: Optional[Dict[str, Any]] = None) -> str:
        """
        Resolve a (possibly nested) endpoint template and format it.
        Example:
            endpoint("trakt", "sync", "history", fmt={"media_type": "movies"})
        """
        node: Any = self.view(service).endpoints
        for key in keys:
            if not isinstance(node, dict) or key not in node:
                raise ValueError(f"Unknown endpoint '{'.'.join(keys)}' for service '{service}'")
            node = node[key]
        if not isinstance(node, str):
            raise ValueError(f"Endpoint '{'.'.join(keys)}' for service '{service}' is not a path")

        return node.format(**(fmt or {}))

    def rate_limits(self, service: str) -> Dict[str, Any]:
        return dict(self.view(service).rate_limits or {})

    def service_headers(self, service: str) -> Dict[str, str]:
        """Return the default headers for a service (already env-expanded)."""
        return dict(self.view(service).default_headers or {})

    def view(self, service: str) -> ServiceView:
        base_url = get_base_url(service)
        override = self._overrides.get(service) or {}
        if base_url is None and not override:
            raise ValueError(f"Unknown service '{service}'")

        headers = get_default_headers(service)
        headers.update(override.get("default_headers") or {})
        rate_limits = get_rate_limits(service)
        rate_limits.update(override.get("rate_limits") or {})
        endpoints = dict(get_provider_endpoints(service))
        endpoints.update(override.get("endpoints") or {})

        return ServiceView(
            name=service,
            base_url=override.get("base_url") or base_url or "",
            default_headers=headers,
            rate_limits=rate_limits,
            endpoints=endpoints,
        )


# ----------------------------
# Helpers
# ----------------------------

def _ensure_trailing_slash(u: str) -> str:
    return u if u.endswith("/") else (u + "/")

