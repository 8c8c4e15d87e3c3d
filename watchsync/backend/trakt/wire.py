"""Tolerant decoding of Trakt JSON payloads.

Two failure scopes are kept apart on purpose:

* the envelope (the whole response body) must be a JSON array, otherwise
  :class:`~watchsync.backend.common.errors.ParseError` is raised and the call
  fails as a whole;
* individual entries are decoded field by field. Malformed scalars degrade to
  ``None`` and an entry that ends up without the identifiers needed to map it
  onto the local catalog is dropped.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Callable, List, Mapping, Optional, Tuple, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, TypeAdapter, ValidationError

from watchsync.backend.common.errors import ParseError
from watchsync.backend.common.logging import get_logger
from watchsync.backend.trakt.models import EpisodeWatchEvent, HistoryItem, MediaType

log = get_logger(__name__)

T = TypeVar("T")

_FALLBACK_DATETIME_FORMATS = (
    "%m/%d/%Y %H:%M:%S",
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%dT%H:%M:%S.%fZ",
    "%Y-%m-%dT%H:%M:%SZ",
)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _as_utc(value)
    if not isinstance(value, str):
        return None
    try:
        return _as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
    except ValueError:
        pass
    for fmt in _FALLBACK_DATETIME_FORMATS:
        try:
            return _as_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue
    return None


def parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    return text or None


LenientDatetime = Annotated[Optional[datetime], BeforeValidator(parse_datetime)]
LenientInt = Annotated[Optional[int], BeforeValidator(parse_int)]
LenientStr = Annotated[Optional[str], BeforeValidator(parse_str)]


class WireIds(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tmdb: LenientInt = None


class WireMedia(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: LenientStr = None
    ids: Optional[WireIds] = None

    @property
    def tmdb_id(self) -> Optional[int]:
        return self.ids.tmdb if self.ids is not None else None


class WireEpisode(BaseModel):
    model_config = ConfigDict(extra="ignore")

    season: LenientInt = None
    number: LenientInt = None


class WireEntry(BaseModel):
    """Fields read from history, watched, ratings and watchlist entries; the rest is ignored."""

    model_config = ConfigDict(extra="ignore")

    type: LenientStr = None
    watched_at: LenientDatetime = None
    last_watched_at: LenientDatetime = None
    rating: LenientInt = None
    movie: Optional[WireMedia] = None
    show: Optional[WireMedia] = None
    episode: Optional[WireEpisode] = None


class TokenResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    access_token: str
    refresh_token: str
    expires_in: int
    token_type: Optional[str] = None
    scope: Optional[str] = None
    created_at: Optional[int] = None


_ARRAY_ADAPTER = TypeAdapter(List[Any])


# ---------------------------------------------------------------------------
# Envelope
# ---------------------------------------------------------------------------

def decode_array(body: str, what: str) -> List[Any]:
    """Decode a response body that must be a JSON array."""

    try:
        return _ARRAY_ADAPTER.validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"Failed to parse {what}: {exc.errors()[0]['msg']}") from exc


def decode_items(body: str, parser: Callable[[Any], Optional[T]], what: str) -> List[T]:
    """Decode an array body and run ``parser`` over every element, dropping ``None``."""

    raw = decode_array(body, what)
    items: List[T] = []
    for element in raw:
        item = parser(element)
        if item is not None:
            items.append(item)

    dropped = len(raw) - len(items)
    if dropped:
        log.debug("trakt_entries_dropped", extra={"what": what, "dropped": dropped, "kept": len(items)})

    return items


def decode_token_response(body: str) -> TokenResponse:
    try:
        return TokenResponse.model_validate_json(body)
    except ValidationError as exc:
        raise ParseError(f"Failed to parse token response: {exc.errors()[0]['msg']}") from exc


# ---------------------------------------------------------------------------
# Entries
# ---------------------------------------------------------------------------

def parse_entry(element: Any) -> Optional[WireEntry]:
    if not isinstance(element, Mapping):
        return None
    try:
        return WireEntry.model_validate(element)
    except ValidationError:
        return None


def _history_item(media: Optional[WireMedia], media_type: MediaType, watched_at: Optional[datetime]) -> Optional[HistoryItem]:
    if media is None:
        return None
    tmdb_id = media.tmdb_id
    if tmdb_id is None:
        return None

    return HistoryItem(
        external_id=tmdb_id,
        media_type=media_type,
        title=media.title or "",
        watched_at=watched_at,
    )


def parse_history_movie(element: Any) -> Optional[HistoryItem]:
    entry = parse_entry(element)
    if entry is None:
        return None
    return _history_item(entry.movie, MediaType.MOVIE, entry.watched_at)


def parse_history_show(element: Any) -> Optional[HistoryItem]:
    entry = parse_entry(element)
    if entry is None:
        return None
    return _history_item(entry.show, MediaType.SERIES, entry.watched_at)


def parse_watched_show(element: Any) -> Optional[HistoryItem]:
    """Entry of the aggregate ``/sync/watched/shows`` endpoint."""

    entry = parse_entry(element)
    if entry is None:
        return None
    return _history_item(entry.show, MediaType.SERIES, entry.last_watched_at)


def parse_watchlist_item(element: Any) -> Optional[HistoryItem]:
    entry = parse_entry(element)
    if entry is None:
        return None
    if entry.type == "movie":
        return _history_item(entry.movie, MediaType.MOVIE, entry.watched_at)
    if entry.type == "show":
        return _history_item(entry.show, MediaType.SERIES, entry.watched_at)
    return None


def parse_episode_event(element: Any) -> Optional[EpisodeWatchEvent]:
    entry = parse_entry(element)
    if entry is None or entry.show is None or entry.episode is None:
        return None

    tmdb_id = entry.show.tmdb_id
    number = entry.episode.number
    if tmdb_id is None or number is None:
        return None

    season = entry.episode.season
    return EpisodeWatchEvent(
        external_id=tmdb_id,
        title=entry.show.title or "",
        season=season if season is not None else 0,
        episode=number,
        watched_at=entry.watched_at,
    )


def parse_rating(element: Any) -> Optional[Tuple[int, MediaType, int]]:
    entry = parse_entry(element)
    if entry is None or entry.rating is None:
        return None

    if entry.type == "movie":
        media, media_type = entry.movie, MediaType.MOVIE
    elif entry.type == "show":
        media, media_type = entry.show, MediaType.SERIES
    else:
        return None

    tmdb_id = media.tmdb_id if media is not None else None
    if tmdb_id is None:
        return None

    return tmdb_id, media_type, entry.rating
