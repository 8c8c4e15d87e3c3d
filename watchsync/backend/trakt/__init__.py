"""Trakt import engine public interface, loaded lazily."""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING, Any

__all__ = [
    "HistoryItem",
    "ImportOptions",
    "MediaType",
    "PersonalRating",
    "SyncMode",
    "TraktServices",
    "WatchedSeries",
    "aggregate_episodes",
    "create_trakt_services",
    "map_trakt_rating",
]

_MODULE_EXPORTS = {
    "models": {
        "HistoryItem",
        "ImportOptions",
        "MediaType",
        "PersonalRating",
        "SyncMode",
        "WatchedSeries",
    },
    "aggregator": {"aggregate_episodes"},
    "ratings": {"map_trakt_rating"},
    "services": {"TraktServices", "create_trakt_services"},
}

if TYPE_CHECKING:  # pragma: no cover - for static analysis only
    from .aggregator import aggregate_episodes
    from .models import HistoryItem, ImportOptions, MediaType, PersonalRating, SyncMode, WatchedSeries
    from .ratings import map_trakt_rating
    from .services import TraktServices, create_trakt_services


def __getattr__(name: str) -> Any:
    for module_name, symbols in _MODULE_EXPORTS.items():
        if name in symbols:
            module = importlib.import_module(f"{__name__}.{module_name}")
            value = getattr(module, name)
            globals()[name] = value
            return value
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


def __dir__() -> list[str]:
    exported = set(__all__)
    for symbols in _MODULE_EXPORTS.values():
        exported.update(symbols)
    exported.update(globals().keys())
    return sorted(exported)
