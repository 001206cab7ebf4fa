"""Tests for youread.browser module."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from playwright.async_api import Error as PlaywrightError

from youread.browser import PlaywrightTab, load_cookies_from_file, open_browser
from youread.tab import ChannelError, NavigationError, TabClosedError, TabError

from conftest import BOOKMARK_HTML, BOOKMARK_URL, DETAIL_HTML

DETAIL_URL = "https://www.manganato.gg/manga/solo-leveling"


def _page(url: str = BOOKMARK_URL, html: str = BOOKMARK_HTML, endpoint: bool = True) -> MagicMock:
    page = MagicMock()
    page.url = url
    page.is_closed = MagicMock(return_value=False)
    page.evaluate = AsyncMock(return_value=endpoint)
    page.content = AsyncMock(return_value=html)
    page.goto = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    return page


class TestLoadCookies:
    def test_missing_file(self, tmp_path):
        assert load_cookies_from_file(tmp_path / "cookies.json") == []

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text("[{", encoding="utf-8")
        assert load_cookies_from_file(path) == []

    def test_not_a_list(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps({"name": "x"}), encoding="utf-8")
        assert load_cookies_from_file(path) == []

    def test_converts_browser_export(self, tmp_path):
        path = tmp_path / "cookies.json"
        path.write_text(json.dumps([
            {
                "name": "user_acc",
                "value": "abc",
                "domain": ".manganato.gg",
                "expirationDate": 1900000000,
                "httpOnly": True,
                "secure": True,
                "sameSite": "no_restriction",
            },
            {"name": "", "value": "skip", "domain": ".manganato.gg"},
            {"name": "theme", "value": "dark", "domain": "www.manganato.gg", "sameSite": "Lax"},
        ]), encoding="utf-8")

        cookies = load_cookies_from_file(path)

        assert cookies == [
            {
                "name": "user_acc",
                "value": "abc",
                "domain": ".manganato.gg",
                "path": "/",
                "expires": 1900000000,
                "httpOnly": True,
                "secure": True,
            },
            {
                "name": "theme",
                "value": "dark",
                "domain": "www.manganato.gg",
                "path": "/",
                "sameSite": "Lax",
            },
        ]


class TestPlaywrightTab:
    def test_extract_runs_site_rules_on_page_html(self, site, settings):
        tab = PlaywrightTab(_page(), site, settings)

        response = asyncio.run(tab.send({"kind": "extract"}))

        assert [r["id"] for r in response["records"]] == ["manganato_solo-leveling", "manganato_one-piece"]
        assert response["records"][0]["lastReadChapter"] == 110

    def test_next_page(self, site, settings):
        tab = PlaywrightTab(_page(), site, settings)

        response = asyncio.run(tab.send({"kind": "nextPage"}))

        assert response == {"nextUrl": "https://www.manganato.gg/bookmark?page=2"}

    def test_send_without_endpoint(self, site, settings):
        tab = PlaywrightTab(_page(endpoint=False), site, settings)

        with pytest.raises(ChannelError, match="Receiving end does not exist"):
            asyncio.run(tab.send({"kind": "extract"}))

    def test_send_when_page_is_navigating(self, site, settings):
        page = _page()
        page.evaluate = AsyncMock(side_effect=PlaywrightError("Execution context was destroyed"))
        tab = PlaywrightTab(page, site, settings)

        with pytest.raises(ChannelError):
            asyncio.run(tab.send({"kind": "extract"}))

    def test_unknown_kind(self, site, settings):
        tab = PlaywrightTab(_page(), site, settings)

        with pytest.raises(ValueError):
            asyncio.run(tab.send({"kind": "bogus"}))

    def test_closed_page(self, site, settings):
        page = _page()
        page.is_closed.return_value = True
        tab = PlaywrightTab(page, site, settings)

        with pytest.raises(TabClosedError):
            asyncio.run(tab.current_url())

    def test_navigate_failure(self, site, settings):
        page = _page()
        page.goto = AsyncMock(side_effect=PlaywrightError("net::ERR_ABORTED"))
        tab = PlaywrightTab(page, site, settings)

        with pytest.raises(NavigationError):
            asyncio.run(tab.navigate("https://www.manganato.gg/bookmark?page=2"))

    def test_navigate_does_not_wait_for_load(self, site, settings):
        page = _page()
        tab = PlaywrightTab(page, site, settings)

        asyncio.run(tab.navigate("https://www.manganato.gg/bookmark?page=2"))

        assert page.goto.call_args.kwargs["wait_until"] == "commit"

    def test_is_loaded(self, site, settings):
        page = _page()
        page.evaluate = AsyncMock(return_value="complete")
        tab = PlaywrightTab(page, site, settings)

        assert asyncio.run(tab.is_loaded()) is True

    def test_inject_sets_endpoint_flag(self, site, settings):
        page = _page()
        tab = PlaywrightTab(page, site, settings)

        asyncio.run(tab.inject_extractor())

        assert "__youreadExtractor = true" in page.evaluate.call_args.args[0]

    def test_detail(self, site, settings):
        tab = PlaywrightTab(_page(url=DETAIL_URL, html=DETAIL_HTML), site, settings)

        response = asyncio.run(tab.send({"kind": "detail"}))

        assert response["manga"]["id"] == "manganato_solo-leveling"
        assert response["manga"]["chapters"] == 3


class TestOpenBrowser:
    def test_launch_failure_raises_tab_error(self, settings):
        playwright = MagicMock()
        playwright.chromium.launch = AsyncMock(side_effect=PlaywrightError("Executable doesn't exist"))
        manager = MagicMock()
        manager.__aenter__.return_value = playwright
        manager.__aexit__.return_value = False

        async def open_and_close():
            async with open_browser(settings):
                pass

        with patch("youread.browser.async_playwright", return_value=manager), \
             pytest.raises(TabError, match="Could not launch Chromium"):
            asyncio.run(open_and_close())
