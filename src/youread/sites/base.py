"""Abstract base class for per-site page extractors."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urljoin, urlparse

from youread.config import Settings
from youread.models import Manga, MangaRecord, MangaSearchResult

logger = logging.getLogger(__name__)


class SiteExtractor(ABC):
    """Contract for the scraping rules of one source site.

    Every method works on already-loaded HTML, so the same rules serve both a
    live browser tab and pages fetched over plain HTTP. None of them touch the
    network or mutate anything.
    """

    name: str
    id_prefix: str = ""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.base_url = settings.site_url.rstrip("/")

    @abstractmethod
    def is_listing_page(self, url: str) -> bool:
        """True when ``url`` is a bookmark/history listing page of this site."""
        ...

    @abstractmethod
    def is_detail_page(self, url: str) -> bool:
        """True when ``url`` is a single manga's detail page on this site."""
        ...

    @abstractmethod
    def extract_listing(self, html: str, page_url: str) -> list[MangaRecord]:
        """
        Extract the manga records shown on a listing page.

        Returns an empty list when the page is not a listing page or holds no
        recognizable entries.
        """
        ...

    @abstractmethod
    def next_page_url(self, html: str, page_url: str) -> Optional[str]:
        """Address of the listing page after ``page_url``, or None."""
        ...

    @abstractmethod
    def parse_details(self, html: str, page_url: str) -> Optional[Manga]:
        """Extract catalog details from a manga detail page."""
        ...

    @abstractmethod
    def parse_search_results(self, html: str) -> list[MangaSearchResult]:
        ...

    def absolute_url(self, href: Optional[str]) -> Optional[str]:
        """Resolve ``href`` against the site root; protocol-relative URLs get https."""
        if not href:
            return None
        href = href.strip()
        if href.startswith("//"):
            return f"https:{href}"
        if urlparse(href).scheme in ("http", "https"):
            return href
        return urljoin(self.base_url + "/", href.lstrip("/"))
