"""Bulk import crawl: walk a tab through paginated bookmark pages.

Page 1 is already loaded (and usually already extracted) when an import
starts. Each following cycle runs:

  Find next page -> Navigate -> Await page ready -> Inject extractor
  -> Extract -> Merge

until two pages in a row contribute nothing new, the site has no next page,
or ``max_pages`` pages have been visited. Every step that crosses into the
tab is retried a bounded number of times and then degrades to an empty
result, so ordinary scraping friction never aborts a crawl.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional
from urllib.parse import parse_qs, urlparse

from pydantic import ValidationError

from youread.config import Settings
from youread.models import CrawlStatus, Manga, MangaRecord
from youread.retry import with_retries
from youread.status import StatusBoard
from youread.tab import DETAIL, EXTRACT, NEXT_PAGE, ChannelError, NavigationError, Tab, TabError

logger = logging.getLogger(__name__)

EMPTY_PAGES_TO_CONVERGE = 2


class InvalidTabState(Exception):
    """Raised when an import is started on a tab showing the wrong kind of page."""


@dataclass
class CrawlState:
    """Everything one import run mutates; discarded when the run ends."""

    tab: Tab
    aggregate: list[MangaRecord] = field(default_factory=list)
    current_page: int = 1
    consecutive_empty_pages: int = 0
    pages_visited: int = 0
    status: str = ""


def merge_records(aggregate: list[MangaRecord], incoming: Iterable[MangaRecord]) -> list[MangaRecord]:
    """Append records with unseen ids to ``aggregate``; return the ones added."""
    seen = {record.id for record in aggregate}
    added: list[MangaRecord] = []
    for record in incoming:
        if record.id in seen:
            continue
        seen.add(record.id)
        aggregate.append(record)
        added.append(record)
    return added


def _url_matches(current: str, expected: str, page: int) -> bool:
    """The tab shows ``expected``, or at least a URL carrying ``page=<page>``."""
    if current == expected:
        return True
    try:
        pages = parse_qs(urlparse(current).query).get("page", [])
    except ValueError:
        return False
    return str(page) in pages


def _parse_records(response: Optional[dict[str, Any]]) -> list[MangaRecord]:
    if not response:
        return []
    records: list[MangaRecord] = []
    for raw in response.get("records") or []:
        try:
            records.append(MangaRecord.model_validate(raw))
        except ValidationError as exc:
            logger.debug("Dropping invalid record from extractor: %s", exc)
    return records


class BulkImportCrawler:
    """Drives one tab through a bookmark listing and aggregates what it finds.

    The crawler assumes exclusive ownership of the tab for the duration of
    :meth:`run`; navigating or closing the tab from elsewhere ends the crawl
    early with whatever was collected.
    """

    def __init__(
        self,
        tab: Tab,
        settings: Settings | None = None,
        status_board: StatusBoard | None = None,
    ) -> None:
        self.tab = tab
        self.settings = settings or Settings()
        self.status_board = status_board or StatusBoard()
        self.state: CrawlState | None = None

    @property
    def status(self) -> str:
        """Latest progress line of the current (or last) run."""
        return self.state.status if self.state else ""

    async def run(
        self,
        seed_records: Iterable[MangaRecord],
        max_pages: int | None = None,
    ) -> list[MangaRecord]:
        """
        Crawl from the page currently loaded in the tab.

        Args:
            seed_records: Records already extracted from the loaded page.
            max_pages: Upper bound on pages visited, seed page included.

        Returns:
            Deduplicated records in first-discovery order. Partial results are
            returned if the crawl breaks off unexpectedly.

        Raises:
            InvalidTabState: the tab is not on a listing page.
        """
        if max_pages is None:
            max_pages = self.settings.max_pages
        if max_pages < 1:
            raise ValueError("max_pages must be >= 1")

        await self._check_entry()

        state = self.state = CrawlState(tab=self.tab)
        try:
            await self._crawl(state, list(seed_records), max_pages)
        except Exception:
            logger.exception(
                "Import stopped unexpectedly on page %d; keeping %d records",
                state.current_page, len(state.aggregate),
            )
            self._publish(state, f"stopped on page {state.current_page}: {len(state.aggregate)} total")

        logger.info(
            "Import finished. Pages: %d, Records: %d",
            state.pages_visited, len(state.aggregate),
        )
        return list(state.aggregate)

    async def run_detail(self) -> Optional[MangaRecord]:
        """
        Extract the one manga shown on the detail page loaded in the tab.

        Returns None when the page yields nothing usable within the retry
        budget.

        Raises:
            InvalidTabState: the tab is not on a detail page.
        """
        url = await self._entry_url()
        if not self.tab.site.is_detail_page(url):
            raise InvalidTabState(f"Tab is not on a {self.tab.site.name} manga page: {url}")

        await self._ensure_extractor(1)
        response = await self._request(
            {"kind": DETAIL},
            attempts=self.settings.extract_attempts,
            label="extract manga details",
        )
        raw = (response or {}).get("manga")
        if not raw:
            logger.warning("No manga details found on %s", url)
            return None
        try:
            manga = Manga.model_validate(raw)
            return MangaRecord(
                id=manga.id,
                title=manga.title,
                cover_image_url=manga.cover_image,
                source_url=manga.source_url or url,
                total_chapters=manga.chapters,
            )
        except ValidationError as exc:
            logger.warning("Dropping invalid manga details from %s: %s", url, exc)
            return None

    async def _entry_url(self) -> str:
        try:
            return await self.tab.current_url()
        except TabError as exc:
            raise InvalidTabState(f"Tab is not available: {exc}") from exc

    async def _check_entry(self) -> None:
        url = await self._entry_url()
        if not self.tab.site.is_listing_page(url):
            raise InvalidTabState(
                f"Tab is not on a {self.tab.site.name} bookmark or history page: {url}"
            )

    async def _crawl(self, state: CrawlState, records: list[MangaRecord], max_pages: int) -> None:
        while True:
            state.pages_visited += 1
            added = merge_records(state.aggregate, records)
            if added:
                state.consecutive_empty_pages = 0
            else:
                state.consecutive_empty_pages += 1
            self._publish(
                state,
                f"page {state.current_page}: {len(added)} new, {len(state.aggregate)} total",
                new_records=len(added),
            )

            if state.consecutive_empty_pages >= EMPTY_PAGES_TO_CONVERGE:
                logger.info("No new records on %d pages in a row, stopping", state.consecutive_empty_pages)
                break
            if state.current_page >= max_pages:
                logger.info("Reached page limit (%d)", max_pages)
                break

            next_url = await self._find_next_page(state)
            if not next_url:
                logger.info("No page after page %d, stopping", state.current_page)
                break

            state.current_page += 1
            await self._navigate(next_url, state.current_page)
            await self._await_page_ready(next_url, state.current_page)
            records = await self._extract(state)

        self._publish(
            state,
            f"done: {len(state.aggregate)} manga from {state.pages_visited} pages",
        )

    def _publish(self, state: CrawlState, message: str, new_records: int = 0) -> None:
        state.status = message
        self.status_board.publish(CrawlStatus(
            message=message,
            page=state.current_page,
            new_records=new_records,
            total=len(state.aggregate),
        ))

    async def _reinject(self) -> None:
        try:
            await self.tab.inject_extractor()
        except (ChannelError, NavigationError) as exc:
            logger.debug("Re-injecting extractor failed: %s", exc)

    async def _request(self, message: dict[str, Any], *, attempts: int, label: str) -> Optional[dict[str, Any]]:
        async def attempt() -> dict[str, Any]:
            try:
                return await self.tab.send(message)
            except ChannelError:
                # The endpoint may not have survived the last navigation.
                await self._reinject()
                raise

        return await with_retries(
            attempt,
            attempts=attempts,
            delay=self.settings.retry_delay,
            label=label,
        )

    async def _ensure_extractor(self, page: int) -> bool:
        async def inject() -> bool:
            await self.tab.inject_extractor()
            return True

        return await with_retries(
            inject,
            attempts=self.settings.inject_attempts,
            delay=self.settings.retry_delay,
            default=False,
            label=f"inject extractor (page {page})",
        )

    async def _extract(self, state: CrawlState) -> list[MangaRecord]:
        await self._ensure_extractor(state.current_page)
        response = await self._request(
            {"kind": EXTRACT},
            attempts=self.settings.extract_attempts,
            label=f"extract page {state.current_page}",
        )
        records = _parse_records(response)
        logger.debug("Page %d yielded %d records", state.current_page, len(records))
        return records

    async def _find_next_page(self, state: CrawlState) -> Optional[str]:
        response = await self._request(
            {"kind": NEXT_PAGE},
            attempts=self.settings.next_page_attempts,
            label=f"next page after {state.current_page}",
        )
        if not response:
            return None
        return response.get("nextUrl") or None

    async def _navigate(self, url: str, page: int) -> None:
        async def go() -> bool:
            await self.tab.navigate(url)
            return True

        logger.info("Navigating to page %d: %s", page, url)
        await with_retries(
            go,
            attempts=self.settings.navigate_attempts,
            delay=self.settings.retry_delay,
            default=False,
            label=f"navigate to page {page}",
        )

    async def _await_page_ready(self, url: str, page: int) -> None:
        async def page_ready() -> bool:
            if not await self.tab.is_loaded():
                return False
            return _url_matches(await self.tab.current_url(), url, page)

        ready = await with_retries(
            page_ready,
            timeout=self.settings.ready_timeout,
            delay=self.settings.ready_poll_interval,
            until=bool,
            default=False,
            label=f"wait for page {page}",
        )
        if not ready:
            logger.warning(
                "Page %d not ready after %.0fs, extracting anyway",
                page, self.settings.ready_timeout,
            )


async def run_import(
    tab: Tab,
    seed_records: Iterable[MangaRecord],
    max_pages: int | None = None,
    *,
    settings: Settings | None = None,
    status_board: StatusBoard | None = None,
) -> list[MangaRecord]:
    """Run one bulk import on ``tab``. See :meth:`BulkImportCrawler.run`."""
    crawler = BulkImportCrawler(tab, settings=settings, status_board=status_board)
    return await crawler.run(seed_records, max_pages=max_pages)


async def run_detail_import(tab: Tab, *, settings: Settings | None = None) -> Optional[MangaRecord]:
    """Extract the manga on a detail page. See :meth:`BulkImportCrawler.run_detail`."""
    return await BulkImportCrawler(tab, settings=settings).run_detail()
