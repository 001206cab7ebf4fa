"""Genre-based recommendations from the reading history."""

from __future__ import annotations

import logging
import random
from typing import Iterable, Protocol

from youread.models import MangaSearchResult, TrackedManga

logger = logging.getLogger(__name__)

POPULAR_QUERIES = ("action", "fantasy", "romance", "comedy", "drama")
MAX_GENRES = 5
DEFAULT_LIMIT = 20


class RecommendationError(Exception):
    """Raised when there is nothing to base recommendations on."""


class SearchClient(Protocol):
    def search(self, query: str) -> list[MangaSearchResult]:
        ...


def recommend(
    tracked: Iterable[TrackedManga],
    client: SearchClient,
    limit: int = DEFAULT_LIMIT,
    rng: random.Random | None = None,
) -> list[MangaSearchResult]:
    """
    Suggest untracked manga sharing genres with what the user reads.

    Searches by the first few genres of reading/completed entries, or by a
    random popular genre when none of them carries genre information.
    """
    tracked = list(tracked)
    read = [m for m in tracked if m.reading_status in ("reading", "completed")]
    if not read:
        raise RecommendationError("Read some manga first to get recommendations!")

    genres = list(dict.fromkeys(g for m in read for g in m.genres))
    if genres:
        query = " ".join(genres[:MAX_GENRES])
    else:
        query = (rng or random).choice(POPULAR_QUERIES)
    logger.info("Recommendation query: %s", query)

    tracked_ids = {m.id for m in tracked}
    unique: dict[str, MangaSearchResult] = {}
    for result in client.search(query):
        if result.id not in tracked_ids and result.id not in unique:
            unique[result.id] = result
    return list(unique.values())[:limit]
