from __future__ import annotations

from watchsync.backend.trakt.models import PersonalRating


def map_trakt_rating(trakt_rating: int) -> PersonalRating:
    """Map a Trakt 1-10 rating onto the five local buckets.

    The input is not range checked; Trakt documents its scale as 1-10.
    """

    if trakt_rating >= 9:
        return PersonalRating.OUTSTANDING
    if trakt_rating >= 7:
        return PersonalRating.ENTERTAINING
    if trakt_rating >= 5:
        return PersonalRating.DECENT
    if trakt_rating >= 3:
        return PersonalRating.MEH

    return PersonalRating.WASTE
