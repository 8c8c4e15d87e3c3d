"""Group flat per-episode watch events into :class:`WatchedSeries`."""

from __future__ import annotations

from collections import OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from watchsync.backend.trakt.models import (
    EpisodeWatch,
    EpisodeWatchEvent,
    SyncMode,
    WatchedSeries,
)


def _latest(events: Iterable[EpisodeWatchEvent]) -> Optional[datetime]:
    stamps = [event.watched_at for event in events if event.watched_at is not None]
    return max(stamps) if stamps else None


def _earliest(events: Iterable[EpisodeWatchEvent]) -> Optional[datetime]:
    stamps = [event.watched_at for event in events if event.watched_at is not None]
    return min(stamps) if stamps else None


def _first_watches(events: List[EpisodeWatchEvent]) -> List[EpisodeWatch]:
    # Rewatches collapse onto the first time the episode was seen.
    by_episode: Dict[Tuple[int, int], List[EpisodeWatchEvent]] = OrderedDict()
    for event in events:
        by_episode.setdefault((event.season, event.episode), []).append(event)

    return [
        EpisodeWatch(season_number=season, episode_number=episode, watched_at=_earliest(watches))
        for (season, episode), watches in by_episode.items()
    ]


def _every_watch(events: List[EpisodeWatchEvent]) -> List[EpisodeWatch]:
    return [
        EpisodeWatch(season_number=event.season, episode_number=event.episode, watched_at=event.watched_at)
        for event in events
    ]


def aggregate_episodes(events: Iterable[EpisodeWatchEvent], mode: SyncMode) -> List[WatchedSeries]:
    """Group events by show.

    In ``FULL`` mode each ``(season, episode)`` pair appears once with its
    earliest watch date. In ``INCREMENTAL`` mode every event is kept so the
    caller can tell rewatches apart from already stored watches.
    """

    by_show: Dict[int, List[EpisodeWatchEvent]] = OrderedDict()
    for event in events:
        by_show.setdefault(event.external_id, []).append(event)

    build = _first_watches if mode is SyncMode.FULL else _every_watch

    return [
        WatchedSeries(
            external_id=external_id,
            title=group[0].title,
            last_watched_at=_latest(group),
            watched_episodes=build(group),
        )
        for external_id, group in by_show.items()
    ]
