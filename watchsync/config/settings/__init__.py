"""Settings facade. Submodules are imported on first attribute access."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

_MODULE_EXPORTS = {
    "core": {
        "Settings",
        "get_settings",
    },
    "paths": {
        "get_database_path",
        "get_provider_settings_path",
        "resolve_path",
        "snapshot_paths",
    },
    "providers": {
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
    },
}

_SUBMODULE_NAMES = {"core", "paths", "providers"}

__all__ = sorted(_SUBMODULE_NAMES.union(*_MODULE_EXPORTS.values()))

if TYPE_CHECKING:  # pragma: no cover - only for static analysis
    from . import core, paths, providers
    from .core import Settings, get_settings
    from .paths import get_database_path, get_provider_settings_path, resolve_path, snapshot_paths
    from .providers import (
        OOB_REDIRECT_URI,
        PROVIDER_SETTINGS,
        get_base_url,
        get_default_headers,
        get_provider_endpoints,
        get_rate_limits,
        get_service_config,
        get_trakt_keys,
        list_provider_configs,
        load_provider_settings,
    )


def __getattr__(name: str) -> Any:
    if name in _SUBMODULE_NAMES:
        module = importlib.import_module(f"{__name__}.{name}")
        globals()[name] = module
        return module

    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            value = getattr(importlib.import_module(f"{__name__}.{module_name}"), name)
            globals()[name] = value
            return value

    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    return sorted(set(__all__) | set(globals().keys()))
