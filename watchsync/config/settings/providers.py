from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from .paths import expand_env, get_provider_settings_path, read_json

OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"


def load_provider_settings() -> Dict[str, Any]:
    """Read the provider settings file without expanding ``${VAR}`` tokens.

    Expansion happens on every lookup so credentials exported after import
    are still picked up.
    """

    return read_json(get_provider_settings_path())


try:  # pragma: no cover - guard against missing files at import time
    PROVIDER_SETTINGS: Dict[str, Any] = load_provider_settings()
except (OSError, ValueError):
    PROVIDER_SETTINGS = {}


def _provider_settings() -> Dict[str, Any]:
    return PROVIDER_SETTINGS.get("providers", {}) if PROVIDER_SETTINGS else {}


def list_provider_configs() -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for name, cfg in _provider_settings().items():
        result[name] = expand_env(dict(cfg)) if isinstance(cfg, Mapping) else {}

    return result


def get_service_config(service: str) -> Optional[Dict[str, Any]]:
    cfg = _provider_settings().get(service)
    if cfg is None:
        return None

    return expand_env(dict(cfg))


def get_rate_limits(service: str) -> Dict[str, Any]:
    cfg = get_service_config(service) or {}

    return dict(cfg.get("rate_limits") or {})


def get_default_headers(service: str) -> Dict[str, str]:
    cfg = get_service_config(service) or {}

    return dict(cfg.get("default_headers") or {})


def get_base_url(service: str) -> Optional[str]:
    cfg = get_service_config(service)
    if not cfg:
        return None

    return cfg.get("base_url")


def get_provider_endpoints(service: str) -> Mapping[str, Any]:
    cfg = get_service_config(service) or {}

    return cfg.get("endpoints", {}) or {}


def get_trakt_keys() -> Dict[str, Optional[str]]:
    cfg = get_service_config("trakt") or {}

    return {
        "client_id": cfg.get("client_id") or None,
        "client_secret": cfg.get("client_secret") or None,
        "redirect_uri": cfg.get("redirect_uri") or OOB_REDIRECT_URI,
        "authorize_url": cfg.get("authorize_url") or "https://trakt.tv/oauth/authorize",
    }


__all__ = [
    "OOB_REDIRECT_URI",
    "PROVIDER_SETTINGS",
    "get_base_url",
    "get_default_headers",
    "get_provider_endpoints",
    "get_rate_limits",
    "get_service_config",
    "get_trakt_keys",
    "list_provider_configs",
    "load_provider_settings",
]
