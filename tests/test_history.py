from datetime import datetime, timedelta, timezone

import pytest

from watchsync.backend.common.errors import ParseError
from watchsync.backend.trakt.history import HISTORY_LIMIT, format_start_at
from watchsync.backend.trakt.models import MediaType

from .fakes import FakeResponse

MOVIE_HISTORY = [
    {"id": 1, "type": "movie", "watched_at": "2024-01-02T10:00:00.000Z", "movie": {"title": "Heat", "ids": {"tmdb": 949}}},
    {"id": 2, "type": "movie", "watched_at": "2024-01-01T10:00:00.000Z", "movie": {"title": "Lost", "ids": {"tmdb": None}}},
]

SHOW_HISTORY = [
    {
        "id": 3,
        "type": "episode",
        "watched_at": "2024-02-03T20:00:00.000Z",
        "show": {"title": "Dark", "ids": {"tmdb": 70523}},
        "episode": {"season": 1, "number": 2},
    },
    {
        "id": 4,
        "type": "episode",
        "watched_at": "2024-02-01T20:00:00.000Z",
        "show": {"title": "Dark", "ids": {"tmdb": 70523}},
        "episode": {"season": 1, "number": 2},
    },
    {
        "id": 5,
        "type": "episode",
        "watched_at": "2024-02-02T20:00:00.000Z",
        "show": {"title": "Dark", "ids": {"tmdb": 70523}},
        "episode": {"season": 1, "number": 1},
    },
    {
        "id": 6,
        "type": "episode",
        "watched_at": "2024-02-04T20:00:00.000Z",
        "show": {"title": "Other", "ids": {"tmdb": 1}},
        "episode": {"season": 3, "number": 7},
    },
]


def test_format_start_at_uses_millisecond_utc():
    since = datetime(2024, 3, 5, 10, 15, 30, 123456, tzinfo=timezone(timedelta(hours=2)))

    assert format_start_at(since) == "2024-03-05T08:15:30.123Z"
    assert format_start_at(datetime(2024, 3, 5)) == "2024-03-05T00:00:00.000Z"


def test_watched_movies_full(fetcher, session):
    session.respond(FakeResponse(200, MOVIE_HISTORY))

    movies = fetcher.get_watched_movies()

    assert [(m.external_id, m.title) for m in movies] == [(949, "Heat")]
    assert session.calls[0]["path"] == "/sync/history/movies"
    assert session.calls[0]["params"] == {"limit": HISTORY_LIMIT}


def test_watched_movies_since_sends_start_at(fetcher, session):
    session.respond(FakeResponse(200, []))

    fetcher.get_watched_movies_since(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))

    assert session.calls[0]["params"] == {"start_at": "2024-01-01T09:00:00.000Z", "limit": HISTORY_LIMIT}


def test_watched_movies_bad_envelope(fetcher, session):
    session.respond(FakeResponse(200, {"error": "x"}))

    with pytest.raises(ParseError):
        fetcher.get_watched_movies()


def test_watched_shows_summary_uses_aggregate_endpoint(fetcher, session):
    session.respond(
        FakeResponse(200, [{"last_watched_at": "2024-02-04T20:00:00.000Z", "show": {"title": "Dark", "ids": {"tmdb": 70523}}}])
    )

    shows = fetcher.get_watched_shows()

    assert session.calls[0]["path"] == "/sync/watched/shows"
    assert shows[0].media_type is MediaType.SERIES
    assert shows[0].watched_at == datetime(2024, 2, 4, 20, 0, tzinfo=timezone.utc)


def test_shows_with_episodes_full_collapses_rewatches(fetcher, session):
    session.respond(FakeResponse(200, SHOW_HISTORY))

    series = fetcher.get_watched_shows_with_episodes()

    assert session.calls[0]["path"] == "/sync/history/shows"
    dark = series[0]
    assert dark.external_id == 70523
    assert dark.last_watched_at == datetime(2024, 2, 3, 20, 0, tzinfo=timezone.utc)
    episodes = {(e.season_number, e.episode_number): e.watched_at for e in dark.watched_episodes}
    assert episodes[(1, 2)] == datetime(2024, 2, 1, 20, 0, tzinfo=timezone.utc)
    assert len(dark.watched_episodes) == 2
    assert series[1].external_id == 1


def test_shows_with_episodes_since_keeps_every_watch(fetcher, session):
    session.respond(FakeResponse(200, SHOW_HISTORY))

    series = fetcher.get_watched_shows_with_episodes_since(datetime(2024, 2, 1, tzinfo=timezone.utc))

    assert "start_at" in session.calls[0]["params"]
    assert len(series[0].watched_episodes) == 3


def test_ratings_last_entry_wins(fetcher, session):
    session.respond(
        FakeResponse(
            200,
            [
                {"type": "movie", "rating": 6, "movie": {"ids": {"tmdb": 949}}},
                {"type": "show", "rating": 9, "show": {"ids": {"tmdb": 949}}},
                {"type": "movie", "rating": 10, "movie": {"ids": {"tmdb": 949}}},
                {"type": "episode", "rating": 3, "show": {"ids": {"tmdb": 1}}},
            ],
        )
    )

    ratings = fetcher.get_ratings()

    assert session.calls[0]["path"] == "/sync/ratings"
    assert ratings == {(949, MediaType.MOVIE): 10, (949, MediaType.SERIES): 9}


def test_watchlist(fetcher, session):
    session.respond(
        FakeResponse(
            200,
            [
                {"type": "movie", "listed_at": "2024-01-01T00:00:00.000Z", "movie": {"title": "M", "ids": {"tmdb": 1}}},
                {"type": "show", "show": {"title": "S", "ids": {"tmdb": 2}}},
                {"type": "episode", "show": {"ids": {"tmdb": 3}}},
            ],
        )
    )

    items = fetcher.get_watchlist()

    assert session.calls[0]["path"] == "/sync/watchlist"
    assert [(i.external_id, i.media_type) for i in items] == [(1, MediaType.MOVIE), (2, MediaType.SERIES)]


def test_debug_show_history_filters_and_limits(fetcher, session):
    session.respond(FakeResponse(200, SHOW_HISTORY))

    entries = fetcher.debug_show_history(70523, limit=2)

    assert [entry["id"] for entry in entries] == [3, 4]
