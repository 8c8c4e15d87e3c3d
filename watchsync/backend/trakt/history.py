"""Full and incremental retrieval of the user's Trakt history."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional

from watchsync.backend.common.logging import get_logger
from watchsync.backend.trakt import wire
from watchsync.backend.trakt.aggregator import aggregate_episodes
from watchsync.backend.trakt.gateway import SERVICE_NAME, TraktGateway
from watchsync.backend.trakt.models import (
    EpisodeWatchEvent,
    HistoryItem,
    RatingMap,
    SyncMode,
    WatchedSeries,
)

HISTORY_LIMIT = 10000


def format_start_at(since: datetime) -> str:
    """Trakt expects ``YYYY-MM-DDTHH:MM:SS.fffZ`` in UTC."""

    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    since = since.astimezone(timezone.utc)
    return since.strftime("%Y-%m-%dT%H:%M:%S.") + f"{since.microsecond // 1000:03d}Z"


class TraktHistoryFetcher:
    """Reads watched movies, watched shows, ratings and the watchlist."""

    def __init__(self, gateway: TraktGateway) -> None:
        self._log = get_logger(__name__)
        self._gateway = gateway

    # ------------------------------------------------------------------
    # Movies
    # ------------------------------------------------------------------
    def get_watched_movies(self) -> List[HistoryItem]:
        return self._movie_history(None)

    def get_watched_movies_since(self, since: datetime) -> List[HistoryItem]:
        return self._movie_history(since)

    # ------------------------------------------------------------------
    # Shows
    # ------------------------------------------------------------------
    def get_watched_shows(self) -> List[HistoryItem]:
        """Show-level summary from the aggregate endpoint (no episodes)."""

        body = self._gateway.authenticated_get(self._endpoint("watched", media_type="shows"))
        return wire.decode_items(body, wire.parse_watched_show, "watched shows")

    def get_watched_shows_with_episodes(self) -> List[WatchedSeries]:
        # Only the history endpoint carries a timestamp per episode watch.
        events = self._episode_history(None)
        return aggregate_episodes(events, SyncMode.FULL)

    def get_watched_shows_with_episodes_since(self, since: datetime) -> List[WatchedSeries]:
        events = self._episode_history(since)
        return aggregate_episodes(events, SyncMode.INCREMENTAL)

    def debug_show_history(self, external_id: int, *, limit: int = 20) -> List[Dict[str, Any]]:
        """Raw history entries for one show, for diagnosing odd imports."""

        body = self._gateway.authenticated_get(
            self._endpoint("history", media_type="shows"),
            params={"limit": HISTORY_LIMIT},
        )
        matches: List[Dict[str, Any]] = []
        for element in wire.decode_array(body, "show history"):
            entry = wire.parse_entry(element)
            if entry is None or entry.show is None or entry.show.tmdb_id != external_id:
                continue
            matches.append(dict(element))
            if len(matches) >= limit:
                break

        return matches

    # ------------------------------------------------------------------
    # Ratings / watchlist
    # ------------------------------------------------------------------
    def get_ratings(self) -> RatingMap:
        body = self._gateway.authenticated_get(self._endpoint("ratings"))
        ratings: RatingMap = {}
        for external_id, media_type, rating in wire.decode_items(body, wire.parse_rating, "ratings"):
            ratings[(external_id, media_type)] = rating

        return ratings

    def get_watchlist(self) -> List[HistoryItem]:
        body = self._gateway.authenticated_get(self._endpoint("watchlist"))
        return wire.decode_items(body, wire.parse_watchlist_item, "watchlist")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _movie_history(self, since: Optional[datetime]) -> List[HistoryItem]:
        body = self._gateway.authenticated_get(
            self._endpoint("history", media_type="movies"),
            params=self._history_params(since),
        )
        items = wire.decode_items(body, wire.parse_history_movie, "watched movies")
        self._log.info("trakt_movies_fetched", extra={"count": len(items), "incremental": since is not None})

        return items

    def _episode_history(self, since: Optional[datetime]) -> List[EpisodeWatchEvent]:
        body = self._gateway.authenticated_get(
            self._endpoint("history", media_type="shows"),
            params=self._history_params(since),
        )
        events = wire.decode_items(body, wire.parse_episode_event, "watched shows")
        self._log.info("trakt_episodes_fetched", extra={"count": len(events), "incremental": since is not None})

        return events

    def _history_params(self, since: Optional[datetime]) -> Mapping[str, Any]:
        params: Dict[str, Any] = {}
        if since is not None:
            params["start_at"] = format_start_at(since)
        params["limit"] = HISTORY_LIMIT

        return params

    def _endpoint(self, key: str, **fmt: str) -> str:
        return self._gateway.session.urlm.endpoint(SERVICE_NAME, "sync", key, fmt=fmt)
