"""Playwright-backed browser tab for bulk imports."""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

from playwright.async_api import BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from youread.config import Settings
from youread.sites.base import SiteExtractor
from youread.tab import (
    DETAIL,
    EXTRACT,
    NEXT_PAGE,
    ChannelError,
    NavigationError,
    Tab,
    TabClosedError,
    TabError,
)

logger = logging.getLogger(__name__)

# Lives on the page's window object, so every full navigation drops it.
_ENDPOINT_FLAG = "__youreadExtractor"
_INJECT_SCRIPT = f"() => {{ window.{_ENDPOINT_FLAG} = true; }}"
_ENDPOINT_CHECK_SCRIPT = f"() => window.{_ENDPOINT_FLAG} === true"

BROWSER_ARGS = [
    "--disable-blink-features=AutomationControlled",
    "--disable-dev-shm-usage",
    "--no-sandbox",
]


def load_cookies_from_file(filepath: Path) -> List[Dict[str, Any]]:
    """Load exported browser cookies so bookmark pages render logged in."""
    if not filepath.exists():
        logger.debug("Cookies file not found: %s", filepath)
        return []

    try:
        cookies = json.loads(filepath.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.error("Could not read cookies file %s: %s", filepath, exc)
        return []

    if not isinstance(cookies, list):
        logger.warning("Cookies file should contain a list of cookie objects")
        return []

    playwright_cookies = []
    for cookie in cookies:
        pc = {
            "name": cookie.get("name", ""),
            "value": cookie.get("value", ""),
            "domain": cookie.get("domain", ""),
            "path": cookie.get("path", "/"),
        }
        if cookie.get("expires") or cookie.get("expirationDate"):
            pc["expires"] = cookie.get("expires") or cookie.get("expirationDate")
        if cookie.get("httpOnly") is not None:
            pc["httpOnly"] = cookie["httpOnly"]
        if cookie.get("secure") is not None:
            pc["secure"] = cookie["secure"]
        if cookie.get("sameSite") in ("Strict", "Lax", "None"):
            pc["sameSite"] = cookie["sameSite"]

        if pc["name"] and pc["value"] and pc["domain"]:
            playwright_cookies.append(pc)

    logger.info("Loaded %d cookies from %s", len(playwright_cookies), filepath)
    return playwright_cookies


class PlaywrightTab(Tab):
    """A Playwright page exposed through the :class:`Tab` contract.

    The extractor endpoint runs the site's scraping rules on the page's
    current HTML. It only answers after :meth:`inject_extractor` ran on the
    current document.
    """

    def __init__(self, page: Page, site: SiteExtractor, settings: Settings | None = None) -> None:
        self.page = page
        self.site = site
        self.settings = settings or Settings()

    def _check_open(self) -> None:
        if self.page.is_closed():
            raise TabClosedError("The tab was closed")

    async def current_url(self) -> str:
        self._check_open()
        return self.page.url

    async def is_loaded(self) -> bool:
        self._check_open()
        try:
            return await self.page.evaluate("document.readyState") == "complete"
        except PlaywrightError as exc:
            raise NavigationError(f"Could not read load state: {exc}") from exc

    async def navigate(self, url: str) -> None:
        self._check_open()
        try:
            await self.page.goto(url, wait_until="commit", timeout=self.settings.http_timeout * 1000)
        except PlaywrightError as exc:
            if self.page.is_closed():
                raise TabClosedError("The tab was closed during navigation") from exc
            raise NavigationError(f"Navigation to {url} failed: {exc}") from exc

    async def inject_extractor(self) -> None:
        self._check_open()
        try:
            await self.page.wait_for_load_state("domcontentloaded", timeout=self.settings.http_timeout * 1000)
            await self.page.evaluate(_INJECT_SCRIPT)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(f"Page did not finish loading: {exc}") from exc
        except PlaywrightError as exc:
            raise ChannelError(f"Could not inject extractor: {exc}") from exc
        logger.debug("Extractor injected into %s", self.page.url)

    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        self._check_open()
        try:
            alive = await self.page.evaluate(_ENDPOINT_CHECK_SCRIPT)
            html = await self.page.content() if alive else ""
        except PlaywrightError as exc:
            raise ChannelError(f"Could not reach extractor: {exc}") from exc
        if not alive:
            raise ChannelError("Could not establish connection. Receiving end does not exist.")

        url = self.page.url
        kind = message.get("kind")
        if kind == EXTRACT:
            records = self.site.extract_listing(html, url)
            return {"records": [r.model_dump(mode="json", by_alias=True) for r in records]}
        if kind == NEXT_PAGE:
            return {"nextUrl": self.site.next_page_url(html, url)}
        if kind == DETAIL:
            manga = self.site.parse_details(html, url)
            return {"manga": manga.model_dump(mode="json") if manga else None}
        raise ValueError(f"Unknown request kind: {kind!r}")


@asynccontextmanager
async def open_browser(settings: Settings) -> AsyncIterator[BrowserContext]:
    """Launch Chromium and yield a context carrying the configured cookies."""
    async with async_playwright() as playwright:
        try:
            browser = await playwright.chromium.launch(headless=settings.headless, args=BROWSER_ARGS)
        except PlaywrightError as exc:
            raise TabError(f"Could not launch Chromium: {exc}") from exc
        try:
            context = await browser.new_context(
                viewport={"width": 1920, "height": 1080},
                user_agent=settings.user_agent,
                locale="en-US",
            )
            if settings.cookies_file:
                cookies = load_cookies_from_file(Path(settings.cookies_file))
                if cookies:
                    await context.add_cookies(cookies)
            yield context
        finally:
            await browser.close()


async def open_tab(context: BrowserContext, url: str, site: SiteExtractor, settings: Settings) -> PlaywrightTab:
    """Open ``url`` in a new page and wrap it as a tab."""
    page = await context.new_page()
    try:
        await page.goto(url, wait_until="domcontentloaded", timeout=settings.http_timeout * 1000)
    except PlaywrightError as exc:
        raise NavigationError(f"Could not open {url}: {exc}") from exc
    return PlaywrightTab(page, site, settings)
