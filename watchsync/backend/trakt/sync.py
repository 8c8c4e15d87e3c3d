"""Import and incremental sync orchestration.

The service only gathers and shapes what Trakt reports. Merging the returned
batches into the local library is up to the caller.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, TypeVar

from watchsync.backend.common.errors import AuthenticationError, WatchSyncError
from watchsync.backend.common.logging import get_logger
from watchsync.backend.persistence import TraktSettingsStore
from watchsync.backend.trakt.history import TraktHistoryFetcher
from watchsync.backend.trakt.models import (
    HistoryItem,
    ImportBatch,
    ImportOptions,
    ImportPreview,
    MediaType,
    RatingMap,
    SyncBatch,
    SyncCursor,
    SyncStatus,
    WatchedSeries,
)
from watchsync.backend.trakt.tokens import TokenStore

SYNC_OVERLAP = timedelta(hours=1)

T = TypeVar("T")
LibraryLookup = Callable[[int, MediaType], bool]


def effective_since(since: datetime) -> datetime:
    """Normalize to UTC (naive values are taken as UTC) and step back one hour."""

    if since.tzinfo is None:
        since = since.replace(tzinfo=timezone.utc)
    return since.astimezone(timezone.utc) - SYNC_OVERLAP


def _unique_by_id(items: List[T], key: Callable[[T], int]) -> List[T]:
    seen: Dict[int, T] = {}
    for item in items:
        seen.setdefault(key(item), item)
    return list(seen.values())


class TraktSyncService:
    def __init__(
        self,
        fetcher: TraktHistoryFetcher,
        tokens: TokenStore,
        store: TraktSettingsStore,
    ) -> None:
        self._log = get_logger(__name__)
        self._fetcher = fetcher
        self._tokens = tokens
        self._store = store

    # ------------------------------------------------------------------
    # Status / cursor
    # ------------------------------------------------------------------
    def status(self) -> SyncStatus:
        current = self._store.get_settings()
        return SyncStatus(
            is_authenticated=self._tokens.is_authenticated(),
            last_sync_at=current.last_sync_at,
            auto_sync_enabled=current.auto_sync_enabled,
        )

    def cursor(self) -> SyncCursor:
        return SyncCursor(last_sync_at=self._store.get_settings().last_sync_at)

    # ------------------------------------------------------------------
    # Full import
    # ------------------------------------------------------------------
    def preview(self, options: ImportOptions, in_library: Optional[LibraryLookup] = None) -> ImportPreview:
        """Describe what a full import would bring in. Any fetch failure propagates."""

        movies: List[HistoryItem] = []
        series: List[HistoryItem] = []
        if options.watched_movies:
            movies.extend(self._fetcher.get_watched_movies())
        if options.watched_series:
            series.extend(self._fetcher.get_watched_shows())
        if options.watchlist:
            for item in self._fetcher.get_watchlist():
                (movies if item.media_type is MediaType.MOVIE else series).append(item)

        movies = _unique_by_id(movies, lambda item: item.external_id)
        series = _unique_by_id(series, lambda item: item.external_id)

        already = 0
        if in_library is not None:
            already = sum(1 for item in [*movies, *series] if in_library(item.external_id, item.media_type))

        total = len(movies) + len(series)
        return ImportPreview(
            movies=movies,
            series=series,
            total_items=total,
            already_in_library=already,
            new_items=total - already,
        )

    def full_import(self, options: ImportOptions) -> ImportBatch:
        """Fetch everything selected in ``options``.

        A failing source is reported in ``errors`` and the remaining sources
        are still fetched. The sync cursor only moves when every selected
        source succeeded.
        """

        self._require_authentication()
        errors: List[str] = []
        movies: List[HistoryItem] = []
        series: List[WatchedSeries] = []
        ratings: RatingMap = {}

        if options.watched_movies:
            movies.extend(self._collect(self._fetcher.get_watched_movies, "watched movies", errors) or [])
        if options.watched_series:
            series.extend(
                self._collect(self._fetcher.get_watched_shows_with_episodes, "watched series", errors) or []
            )
        if options.watchlist:
            for item in self._collect(self._fetcher.get_watchlist, "watchlist", errors) or []:
                if item.media_type is MediaType.MOVIE:
                    movies.append(item)
                else:
                    series.append(
                        WatchedSeries(
                            external_id=item.external_id,
                            title=item.title,
                            last_watched_at=item.watched_at,
                            rating=item.rating,
                        )
                    )
        if options.ratings:
            ratings = self._collect(self._fetcher.get_ratings, "ratings", errors) or {}

        movies = [
            item.model_copy(update={"rating": ratings.get((item.external_id, MediaType.MOVIE), item.rating)})
            for item in _unique_by_id(movies, lambda item: item.external_id)
        ]
        series = [
            show.model_copy(update={"rating": ratings.get((show.external_id, MediaType.SERIES), show.rating)})
            for show in _unique_by_id(series, lambda show: show.external_id)
        ]

        self._advance_cursor(errors)
        self._log.info(
            "trakt_full_import_fetched",
            extra={"movies": len(movies), "series": len(series), "ratings": len(ratings), "errors": len(errors)},
        )

        return ImportBatch(movies=movies, series=series, ratings=ratings, errors=errors)

    # ------------------------------------------------------------------
    # Incremental sync
    # ------------------------------------------------------------------
    def incremental_sync(self) -> SyncBatch:
        self._require_authentication()
        last_sync = self.cursor().last_sync_at
        if last_sync is None:
            self._log.info("trakt_incremental_sync_skipped", extra={"reason": "no_cursor"})
            return SyncBatch()

        return self._sync_from(effective_since(last_sync))

    def resync_since(self, since: datetime) -> SyncBatch:
        self._require_authentication()
        return self._sync_from(effective_since(since))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _sync_from(self, since: datetime) -> SyncBatch:
        errors: List[str] = []
        movies = self._collect(lambda: self._fetcher.get_watched_movies_since(since), "movies", errors) or []
        series = self._collect(
            lambda: self._fetcher.get_watched_shows_with_episodes_since(since), "series", errors
        ) or []
        watchlist = self._collect(self._fetcher.get_watchlist, "watchlist", errors) or []

        self._advance_cursor(errors)
        batch = SyncBatch(since=since, movies=movies, series=series, watchlist=watchlist, errors=errors)
        self._log.info(
            "trakt_sync_fetched",
            extra={
                "since": since.isoformat(),
                "movie_watches": batch.new_movie_watches,
                "episode_watches": batch.new_episode_watches,
                "errors": len(errors),
            },
        )

        return batch

    def _advance_cursor(self, errors: List[str]) -> None:
        if errors:
            self._log.warning("trakt_cursor_kept", extra={"failed_sources": len(errors)})
            return
        self._store.update_last_sync()

    def _collect(self, fetch: Callable[[], T], label: str, errors: List[str]) -> Optional[T]:
        try:
            return fetch()
        except WatchSyncError as exc:
            self._log.warning("trakt_fetch_failed", extra={"source": label, "error": str(exc)})
            errors.append(f"Failed to fetch {label}: {exc}")
            return None

    def _require_authentication(self) -> None:
        if not self._tokens.is_authenticated():
            raise AuthenticationError("Not authenticated with Trakt")
