"""Scraping rules for MangaNato bookmark, history, detail and search pages."""

from __future__ import annotations

import logging
import re
from typing import Optional
from urllib.parse import parse_qsl, quote, urlencode, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError

from youread.models import Manga, MangaRecord, MangaSearchResult
from youread.sites.base import SiteExtractor

logger = logging.getLogger(__name__)

LISTING_ITEM_SELECTOR = ", ".join([
    ".panel-bookmark .bookmark-item",
    ".bookmark-item",
    ".item-story",
    ".story-item",
    ".history-item",
    '[class*="bookmark"]',
    '[class*="story-item"]',
    ".panel-content-history .item-story",
    "table tbody tr",
    ".list-story .item-story",
])
LISTING_LINK_SELECTOR = 'a[href*="/manga/"], .item-title a, h3 a, .story-name a, .bookmark-title a, a[title]'
LISTING_TITLE_SELECTOR = ".item-title, h3, .story-name"
NEXT_LINK_SELECTOR = 'a[href*="page="], .page-next a, .pagination a:last-child'

DETAIL_TITLE_SELECTOR = 'h1, .story-info-right h1, .story-info-right h2, [class*="story-title"]'
DETAIL_COVER_SELECTOR = '.story-info-left img, .info-image img, [class*="cover"] img'
DETAIL_COVER_FALLBACK_SELECTOR = (
    'img[src*="cover"], img[src*="thumb"], img[src*="manga"], .item-img img, .story-img img'
)
DETAIL_DESCRIPTION_SELECTOR = '.panel-story-info-description, .story-description, [class*="description"]'
DETAIL_AUTHOR_SELECTOR = 'a[href*="/author/"]'
DETAIL_GENRE_SELECTOR = 'a[href*="/genre/"]'
DETAIL_STATUS_SELECTOR = ".story-info-right, .info-status"
DETAIL_CHAPTER_SELECTOR = '.row-content-chapter a, .chapter-name, [class*="chapter"] a'

SEARCH_ITEM_SELECTOR = (
    '.search-story-item, .item-story, .story-item, [class*="story-item"], '
    ".panel-content-genre .content-genres-item"
)
SEARCH_TITLE_SELECTOR = "h3 a, .item-title a, a.story-name, a[title], h3, .story-name"
SEARCH_DESCRIPTION_SELECTOR = ".item-story-desc, .story-desc, .text-gray"
MAX_SEARCH_RESULTS = 20

IMAGE_ATTRS = ("src", "data-src", "data-original", "data-lazy-src")
VIEWED_RE = re.compile(r"Viewed\s*:\s*Ch(?:apter)?\.?\s*(\d+)", re.IGNORECASE)
CURRENT_RE = re.compile(r"Current\s*:\s*Ch(?:apter)?\.?\s*(\d+)", re.IGNORECASE)
STYLE_URL_RE = re.compile(r"url\(['\"]?([^'\")]+)['\"]?\)")
FIRST_NUMBER_RE = re.compile(r"(\d+)")


def _slug_after_manga(url: str) -> Optional[str]:
    """Path segment following ``/manga/``, without query string."""
    if "/manga/" not in url:
        return None
    slug = url.split("/manga/", 1)[1].split("/")[0].split("?")[0].split("#")[0]
    return slug or None


def _last_path_segment(url: str) -> Optional[str]:
    try:
        parts = [p for p in urlparse(url).path.split("/") if p]
    except ValueError:
        return None
    return parts[-1] if parts else None


def _image_src(img: Optional[Tag]) -> Optional[str]:
    if img is None:
        return None
    for attr in IMAGE_ATTRS:
        value = img.get(attr)
        if value:
            return value
    return None


class ManganatoSite(SiteExtractor):
    name = "manganato"
    id_prefix = "manganato_"

    def _is_site_url(self, url: str) -> bool:
        host = urlparse(url).netloc.lower()
        return bool(host) and ("manganato" in host or host == urlparse(self.base_url).netloc.lower())

    def is_listing_page(self, url: str) -> bool:
        if not url or not self._is_site_url(url):
            return False
        path = urlparse(url).path
        return "/bookmark" in path or "/history" in path

    def is_detail_page(self, url: str) -> bool:
        if not url or not self._is_site_url(url):
            return False
        parts = [p for p in urlparse(url).path.split("/") if p]
        return len(parts) == 2 and parts[0] == "manga"

    def search_url(self, query: str) -> str:
        return f"{self.base_url}/search/story/{quote(query)}"

    def detail_url(self, manga_id: str) -> str:
        return f"{self.base_url}/manga/{manga_id.removeprefix(self.id_prefix)}"

    # Listing pages

    def extract_listing(self, html: str, page_url: str) -> list[MangaRecord]:
        if not self.is_listing_page(page_url):
            return []

        soup = BeautifulSoup(html, "html.parser")
        records: list[MangaRecord] = []
        seen: set[str] = set()

        for item in soup.select(LISTING_ITEM_SELECTOR):
            # The broad selectors also match wrappers around several entries.
            slugs = {_slug_after_manga(a.get("href", "")) for a in item.select('a[href*="/manga/"]')}
            slugs.discard(None)
            if len(slugs) > 1:
                continue
            try:
                record = self._listing_record(item)
            except ValidationError as exc:
                logger.debug("Skipping malformed bookmark entry: %s", exc)
                continue
            if record is None or record.id in seen:
                continue
            seen.add(record.id)
            records.append(record)

        logger.info("Extracted %d bookmark entries from %s", len(records), page_url)
        return records

    def _listing_record(self, item: Tag) -> Optional[MangaRecord]:
        link = item.select_one(LISTING_LINK_SELECTOR)
        if link is None:
            return None
        href = link.get("href") or ""
        if "/manga/" not in href:
            return None

        source_url = self.absolute_url(href)
        slug = _slug_after_manga(source_url)
        if not slug:
            return None

        title = link.get_text(strip=True) or (link.get("title") or "").strip()
        if not title:
            heading = item.select_one(LISTING_TITLE_SELECTOR)
            title = heading.get_text(strip=True) if heading is not None else ""
        if not title:
            return None

        text = item.get_text(" ", strip=True)
        last_read = None
        viewed = VIEWED_RE.search(text)
        if viewed:
            last_read = int(viewed.group(1))
        else:
            for element in item.find_all(True):
                own_text = element.get_text(" ", strip=True)
                if "Viewed" in own_text:
                    number = FIRST_NUMBER_RE.search(own_text)
                    if number:
                        last_read = int(number.group(1))
                    break

        current = CURRENT_RE.search(text)
        total = int(current.group(1)) if current else None

        return MangaRecord(
            id=f"{self.id_prefix}{slug}",
            title=title,
            cover_image_url=self.absolute_url(_image_src(item.find("img"))),
            source_url=source_url,
            last_read_chapter=last_read,
            total_chapters=total,
        )

    def next_page_url(self, html: str, page_url: str) -> Optional[str]:
        if not self.is_listing_page(page_url):
            return None

        parsed = urlparse(page_url)
        query = parse_qsl(parsed.query, keep_blank_values=True)
        current = 1
        for key, value in query:
            if key == "page":
                try:
                    current = int(value)
                except ValueError:
                    current = 1
        query = [(k, v) for k, v in query if k != "page"]
        query.append(("page", str(current + 1)))
        next_url = urlunparse(parsed._replace(query=urlencode(query)))

        # Only informative: an empty page past the end is what stops the crawl.
        soup = BeautifulSoup(html, "html.parser")
        if soup.select_one(NEXT_LINK_SELECTOR) is None:
            logger.debug("No next-page link on %s, navigating to %s anyway", page_url, next_url)
        return next_url

    # Detail and search pages

    def parse_details(self, html: str, page_url: str) -> Optional[Manga]:
        slug = _slug_after_manga(page_url) or _last_path_segment(page_url)
        if not slug:
            logger.error("Could not extract manga id from URL: %s", page_url)
            return None

        soup = BeautifulSoup(html, "html.parser")

        title_el = soup.select_one(DETAIL_TITLE_SELECTOR)
        title = title_el.get_text(strip=True) if title_el is not None else ""

        cover_el = soup.select_one(DETAIL_COVER_SELECTOR) or soup.select_one(DETAIL_COVER_FALLBACK_SELECTOR)
        cover = _image_src(cover_el)
        if not cover and cover_el is not None:
            match = STYLE_URL_RE.search(cover_el.get("style", ""))
            if match:
                cover = match.group(1)

        desc_el = soup.select_one(DETAIL_DESCRIPTION_SELECTOR)
        author_el = soup.select_one(DETAIL_AUTHOR_SELECTOR)
        genres = [g.get_text(strip=True) for g in soup.select(DETAIL_GENRE_SELECTOR)]

        status = None
        status_el = soup.select_one(DETAIL_STATUS_SELECTOR)
        if status_el is not None:
            status_text = status_el.get_text(" ", strip=True).lower()
            if "completed" in status_text:
                status = "completed"
            elif "ongoing" in status_text:
                status = "ongoing"

        chapters = len(soup.select(DETAIL_CHAPTER_SELECTOR))

        return Manga(
            id=f"{self.id_prefix}{slug}",
            title=title or "Unknown Title",
            description=desc_el.get_text(strip=True) or None if desc_el is not None else None,
            cover_image=self.absolute_url(cover),
            status=status,
            chapters=chapters or None,
            author=author_el.get_text(strip=True) or None if author_el is not None else None,
            genres=[g for g in genres if g],
            source_url=page_url,
        )

    def parse_search_results(self, html: str) -> list[MangaSearchResult]:
        soup = BeautifulSoup(html, "html.parser")
        results: list[MangaSearchResult] = []
        seen: set[str] = set()

        for item in soup.select(SEARCH_ITEM_SELECTOR):
            title_el = item.select_one(SEARCH_TITLE_SELECTOR)
            link = item.find("a") or title_el
            if link is None:
                continue
            title = (
                (title_el.get_text(strip=True) if title_el is not None else "")
                or link.get_text(strip=True)
                or (link.get("title") or "").strip()
            )
            url = self.absolute_url(link.get("href"))
            slug = _last_path_segment(url) if url else None
            if not title or not slug:
                continue
            manga_id = f"{self.id_prefix}{slug}"
            if manga_id in seen:
                continue
            seen.add(manga_id)
            desc_el = item.select_one(SEARCH_DESCRIPTION_SELECTOR)
            results.append(MangaSearchResult(
                id=manga_id,
                title=title,
                cover_image=self.absolute_url(_image_src(item.find("img"))),
                description=desc_el.get_text(strip=True) or None if desc_el is not None else None,
            ))

        if not results:
            for link in soup.select('a[href*="/manga/"], a[href*="/story/"]'):
                title = link.get_text(strip=True) or (link.get("title") or "").strip()
                url = self.absolute_url(link.get("href"))
                slug = _last_path_segment(url) if url else None
                if not title or not slug:
                    continue
                manga_id = f"{self.id_prefix}{slug}"
                if manga_id in seen:
                    continue
                seen.add(manga_id)
                results.append(MangaSearchResult(id=manga_id, title=title))

        return results[:MAX_SEARCH_RESULTS]
