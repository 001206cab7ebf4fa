"""MangaNato HTML client: search and detail pages fetched over HTTP."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

from youread.clients.http import ApiError, fetch
from youread.config import Settings
from youread.models import Manga, MangaSearchResult
from youread.sites.manganato import ManganatoSite

logger = logging.getLogger(__name__)


def is_manganato_url(url: str) -> bool:
    try:
        return "manganato" in urlparse(url).netloc
    except ValueError:
        return False


class ManganatoClient:
    def __init__(self, settings: Settings, site: ManganatoSite | None = None) -> None:
        self.settings = settings
        self.site = site or ManganatoSite(settings)

    def _fetch_html(self, url: str) -> Optional[str]:
        try:
            return fetch(url, self.settings, headers={"Referer": f"{self.site.base_url}/"}).text
        except ApiError as exc:
            logger.error("Error fetching MangaNato page: %s", exc)
            return None

    def search(self, query: str) -> list[MangaSearchResult]:
        html = self._fetch_html(self.site.search_url(query))
        if not html:
            return []
        results = self.site.parse_search_results(html)
        logger.info("MangaNato search found %d results for: %s", len(results), query)
        return results

    def get_details(self, url: str) -> Optional[Manga]:
        html = self._fetch_html(url)
        if not html:
            return None
        return self.site.parse_details(html, url)

    def get_details_by_id(self, manga_id: str) -> Optional[Manga]:
        """Details for ``manga_id``, with or without the ``manganato_`` prefix."""
        return self.get_details(self.site.detail_url(manga_id))
