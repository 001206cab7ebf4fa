"""MangaDex API client: search, tag search and details."""

from __future__ import annotations

import logging
from typing import Any, Optional

from youread.clients.http import ApiError, fetch
from youread.config import Settings
from youread.models import Manga, MangaSearchResult

logger = logging.getLogger(__name__)

CONTENT_RATINGS = ("safe", "suggestive", "erotica")
TITLE_LANGUAGES = ("en", "ja", "ko", "zh-hans", "zh-hant")
SEARCH_LIMIT = 20


def _localized(values: Optional[dict[str, str]], languages: tuple[str, ...] = TITLE_LANGUAGES) -> Optional[str]:
    """Preferred-language entry of a MangaDex localized string map."""
    if not values:
        return None
    for lang in languages:
        if values.get(lang):
            return values[lang]
    return next((v for v in values.values() if v), None)


def _relationship(item: dict[str, Any], kind: str) -> Optional[dict[str, Any]]:
    return next((rel for rel in item.get("relationships") or [] if rel.get("type") == kind), None)


class MangaDexClient:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self._api = settings.mangadex_api_url.rstrip("/")

    def _get_json(self, path: str, params: Any = None) -> dict[str, Any]:
        return fetch(f"{self._api}/{path}", self.settings, params=params).json()

    def _listing_params(self, order: tuple[str, str], **extra: Any) -> list[tuple[str, Any]]:
        params: list[tuple[str, Any]] = [(k, v) for k, v in extra.items()]
        params += [("limit", SEARCH_LIMIT), ("includes[]", "cover_art")]
        params += [("contentRating[]", rating) for rating in CONTENT_RATINGS]
        params.append((f"order[{order[0]}]", order[1]))
        return params

    def _cover_url(self, item: dict[str, Any]) -> Optional[str]:
        cover = _relationship(item, "cover_art")
        filename = ((cover or {}).get("attributes") or {}).get("fileName")
        if not filename:
            return None
        return f"{self.settings.mangadex_covers_url}/{item['id']}/{filename}.512.jpg"

    def _to_search_result(self, item: dict[str, Any]) -> MangaSearchResult:
        attributes = item.get("attributes") or {}
        title = _localized(attributes.get("title")) or "Unknown Title"
        alt_titles = [t for t in (_localized(alt) for alt in attributes.get("altTitles") or []) if t]
        return MangaSearchResult(
            id=item["id"],
            title=title,
            cover_image=self._cover_url(item),
            description=_localized(attributes.get("description"), ("en", "ja")),
            alt_titles=[title, *alt_titles],
        )

    def _search(self, params: list[tuple[str, Any]], label: str) -> list[MangaSearchResult]:
        try:
            data = self._get_json("manga", params)
        except (ApiError, ValueError) as exc:
            logger.error("Error searching MangaDex for %s: %s", label, exc)
            return []

        items = data.get("data")
        if not isinstance(items, list):
            logger.info("MangaDex search returned no results for: %s", label)
            return []
        logger.info("MangaDex search found %d results for: %s", len(items), label)
        return [self._to_search_result(item) for item in items]

    def search(self, query: str) -> list[MangaSearchResult]:
        """Search titles and alternative titles."""
        return self._search(self._listing_params(("relevance", "desc"), title=query), query)

    def search_by_tag(self, tag_name: str) -> list[MangaSearchResult]:
        """Find highly rated manga carrying the tag whose name matches ``tag_name``."""
        try:
            tags = self._get_json("manga/tag").get("data")
        except (ApiError, ValueError) as exc:
            logger.error("Error loading MangaDex tags: %s", exc)
            return []
        if not isinstance(tags, list):
            return []

        wanted = tag_name.lower()
        match = None
        for tag in tags:
            names = [n.lower() for n in ((tag.get("attributes") or {}).get("name") or {}).values() if n]
            if any(n in wanted or wanted in n for n in names):
                match = tag
                break
        if match is None:
            logger.info("No MangaDex tag found matching: %s", tag_name)
            return []

        params = self._listing_params(("rating", "desc"))
        params.insert(0, ("includedTags[]", match["id"]))
        return self._search(params, f"tag {tag_name}")

    def get_details(self, manga_id: str) -> Optional[Manga]:
        try:
            item = self._get_json(
                f"manga/{manga_id}",
                [("includes[]", "cover_art"), ("includes[]", "author"), ("includes[]", "artist")],
            ).get("data")
        except (ApiError, ValueError) as exc:
            logger.error("Error fetching MangaDex details for %s: %s", manga_id, exc)
            return None
        if not item:
            return None

        chapters = self._chapter_count(manga_id)
        attributes = item.get("attributes") or {}
        creator = _relationship(item, "author") or _relationship(item, "artist") or {}
        genres = [
            _localized((tag.get("attributes") or {}).get("name"), ("en", "ja"))
            for tag in attributes.get("tags") or []
            if (tag.get("attributes") or {}).get("group") == "genre"
        ]

        return Manga(
            id=item["id"],
            title=_localized(attributes.get("title"), ("en", "ja")) or "Unknown Title",
            description=_localized(attributes.get("description"), ("en", "ja")),
            cover_image=self._cover_url(item),
            status=attributes.get("status"),
            chapters=chapters,
            author=(creator.get("attributes") or {}).get("name"),
            genres=[g for g in genres if g],
        )

    def _chapter_count(self, manga_id: str) -> Optional[int]:
        try:
            data = self._get_json(f"manga/{manga_id}/aggregate", [("translatedLanguage[]", "en")])
        except (ApiError, ValueError) as exc:
            logger.warning("Could not load chapter list for %s: %s", manga_id, exc)
            return None
        volumes = data.get("volumes") or {}
        if isinstance(volumes, list):
            volumes = {str(i): v for i, v in enumerate(volumes)}
        return sum(len(volume.get("chapters") or {}) for volume in volumes.values())
