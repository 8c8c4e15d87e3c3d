"""Typed results produced by the Trakt import engine.

Everything the engine hands back to callers lives here. Provider payloads are
decoded by :mod:`watchsync.backend.trakt.wire` and adapted into these models;
callers (usually the persistence layer) upsert them into the local library.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Dict, List, NamedTuple, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field


class MediaType(str, Enum):
    """Media categories the local library distinguishes."""

    MOVIE = "movie"
    SERIES = "series"


class PersonalRating(str, Enum):
    """Five-bucket personal rating used by the local library, best first."""

    OUTSTANDING = "outstanding"
    ENTERTAINING = "entertaining"
    DECENT = "decent"
    MEH = "meh"
    WASTE = "waste"


class SyncMode(str, Enum):
    FULL = "full"
    INCREMENTAL = "incremental"


class StoredToken(BaseModel):
    """OAuth token as cached in memory and persisted by the settings store."""

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    expires_at: datetime

    def is_valid(self, now: datetime) -> bool:
        return self.expires_at > now


class TraktSettings(BaseModel):
    """Snapshot returned by the persistence collaborator."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    auto_sync_enabled: bool = False

    def token(self) -> Optional[StoredToken]:
        if self.access_token and self.refresh_token and self.expires_at:
            return StoredToken(
                access_token=self.access_token,
                refresh_token=self.refresh_token,
                expires_at=self.expires_at,
            )
        return None


class SyncCursor(BaseModel):
    last_sync_at: Optional[datetime] = None


class TraktAuthUrl(BaseModel):
    url: str
    state: str


class HistoryItem(BaseModel):
    """A watched (or watchlisted) movie or show, show-level for series."""

    external_id: int
    media_type: MediaType
    title: str = ""
    watched_at: Optional[datetime] = None
    rating: Optional[int] = None


class EpisodeWatch(BaseModel):
    season_number: int
    episode_number: int
    watched_at: Optional[datetime] = None


class WatchedSeries(BaseModel):
    """A show together with its episode-level watch events."""

    external_id: int
    title: str = ""
    last_watched_at: Optional[datetime] = None
    watched_episodes: List[EpisodeWatch] = Field(default_factory=list)
    rating: Optional[int] = None


class EpisodeWatchEvent(NamedTuple):
    """One flat per-episode watch event, before aggregation."""

    external_id: int
    title: str
    season: int
    episode: int
    watched_at: Optional[datetime]


RatingKey = Tuple[int, MediaType]
RatingMap = Dict[RatingKey, int]


class ImportOptions(BaseModel):
    watched_movies: bool = True
    watched_series: bool = True
    ratings: bool = True
    watchlist: bool = True


class ImportPreview(BaseModel):
    """Summary of what a full import would bring in."""

    movies: Sequence[HistoryItem] = Field(default_factory=list)
    series: Sequence[HistoryItem] = Field(default_factory=list)
    total_items: int = Field(default=0, ge=0)
    already_in_library: int = Field(default=0, ge=0)
    new_items: int = Field(default=0, ge=0)


class ImportBatch(BaseModel):
    """Everything a full import fetched, ready to be upserted by the caller."""

    movies: List[HistoryItem] = Field(default_factory=list)
    series: List[WatchedSeries] = Field(default_factory=list)
    ratings: RatingMap = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

    @property
    def total_items(self) -> int:
        return len(self.movies) + len(self.series)


class SyncBatch(BaseModel):
    """Watch events recorded since a cursor, with duplicates preserved."""

    since: Optional[datetime] = None
    movies: List[HistoryItem] = Field(default_factory=list)
    series: List[WatchedSeries] = Field(default_factory=list)
    watchlist: List[HistoryItem] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)

    @property
    def new_movie_watches(self) -> int:
        return len(self.movies)

    @property
    def new_episode_watches(self) -> int:
        return sum(len(series.watched_episodes) for series in self.series)


class SyncStatus(BaseModel):
    is_authenticated: bool
    last_sync_at: Optional[datetime] = None
    auto_sync_enabled: bool = False
