"""Shared fixtures for YouRead tests."""

from __future__ import annotations

from typing import Callable, Iterable, Optional

import pytest

from youread.config import Settings
from youread.models import MangaRecord
from youread.sites.manganato import ManganatoSite
from youread.tab import DETAIL, EXTRACT, NEXT_PAGE, ChannelError, Tab, TabClosedError

BOOKMARK_URL = "https://www.manganato.gg/bookmark"


def page_url(page: int) -> str:
    return BOOKMARK_URL if page == 1 else f"{BOOKMARK_URL}?page={page}"


def record(manga_id: str, title: Optional[str] = None, **extra) -> MangaRecord:
    return MangaRecord(
        id=manga_id,
        title=title or manga_id.upper(),
        source_url=f"https://www.manganato.gg/manga/{manga_id}",
        **extra,
    )


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Settings with no waiting between retries and files under tmp_path."""
    return Settings(
        retry_delay=0,
        ready_timeout=0.05,
        ready_poll_interval=0,
        library_path=str(tmp_path / "library.json"),
        status_file=str(tmp_path / "status.json"),
    )


class FakeTab(Tab):
    """In-memory tab over numbered bookmark pages.

    Navigating drops the extractor endpoint, like a real page load does.
    """

    def __init__(
        self,
        site: ManganatoSite,
        pages: list[list[MangaRecord]] | Callable[[int], list[MangaRecord]],
        *,
        url: str = BOOKMARK_URL,
        last_page: Optional[int] = None,
        extract_failures: Optional[dict[int, int]] = None,
        close_on_page: Optional[int] = None,
        loaded: bool = True,
        next_page_broken: bool = False,
        inject_broken_on: Iterable[int] = (),
        detail: Optional[dict] = None,
    ) -> None:
        self.site = site
        self._pages = pages
        self.url = url
        self.page = 1
        self.last_page = last_page
        self.extract_failures = dict(extract_failures or {})
        self.close_on_page = close_on_page
        self.loaded = loaded
        self.next_page_broken = next_page_broken
        self.inject_broken_on = set(inject_broken_on)
        self.detail = detail
        self.endpoint = False
        self.navigations: list[str] = []
        self.injections = 0
        self.extract_calls: dict[int, int] = {}
        self.next_page_calls = 0

    def records_for(self, page: int) -> list[MangaRecord]:
        if callable(self._pages):
            return self._pages(page)
        return self._pages[page - 1] if page <= len(self._pages) else []

    async def current_url(self) -> str:
        return self.url

    async def is_loaded(self) -> bool:
        return self.loaded

    async def navigate(self, url: str) -> None:
        page = int(url.rsplit("page=", 1)[1]) if "page=" in url else 1
        if self.close_on_page == page:
            raise TabClosedError("The tab was closed")
        self.navigations.append(url)
        self.url = url
        self.page = page
        self.endpoint = False

    async def inject_extractor(self) -> None:
        self.injections += 1
        if self.page in self.inject_broken_on:
            raise ChannelError("Cannot access contents of the page.")
        self.endpoint = True

    async def send(self, message: dict) -> dict:
        if message["kind"] == EXTRACT:
            self.extract_calls[self.page] = self.extract_calls.get(self.page, 0) + 1
            if self.extract_failures.get(self.page, 0) > 0:
                self.extract_failures[self.page] -= 1
                raise ChannelError("Receiving end does not exist.")
        if message["kind"] == NEXT_PAGE:
            self.next_page_calls += 1
            if self.next_page_broken:
                raise ChannelError("Receiving end does not exist.")
        if not self.endpoint:
            raise ChannelError("Receiving end does not exist.")
        if message["kind"] == EXTRACT:
            return {"records": [r.model_dump(mode="json", by_alias=True) for r in self.records_for(self.page)]}
        if message["kind"] == NEXT_PAGE:
            if self.last_page is not None and self.page >= self.last_page:
                return {"nextUrl": None}
            return {"nextUrl": page_url(self.page + 1)}
        if message["kind"] == DETAIL:
            return {"manga": self.detail}
        raise ValueError(message["kind"])


@pytest.fixture()
def site(settings) -> ManganatoSite:
    return ManganatoSite(settings)


BOOKMARK_HTML = """\
<html>
<body>
  <div class="panel-bookmark">
    <div class="bookmark-item">
      <a href="/manga/solo-leveling"><img src="/thumb/solo.jpg"></a>
      <h3 class="bookmark-title"><a href="/manga/solo-leveling">Solo Leveling</a></h3>
      <p>Viewed : Chapter 110</p>
      <p>Current : Chapter 200</p>
    </div>
    <div class="bookmark-item">
      <a href="https://www.manganato.gg/manga/one-piece?from=bm" title="One Piece">
        <img data-src="https://cdn.example.com/op.jpg">
      </a>
      <p>Viewed : Ch.1050</p>
    </div>
    <div class="bookmark-item">
      <a href="/manga/untitled-entry"></a>
    </div>
    <div class="bookmark-item">
      <a href="/genre/action">Action</a>
    </div>
  </div>
  <div class="pagination"><a href="/bookmark?page=2">Next</a></div>
</body>
</html>
"""

DETAIL_HTML = """\
<html>
<body>
  <div class="story-info-left"><img src="//cdn.example.com/covers/solo.jpg"></div>
  <div class="story-info-right">
    <h1>Solo Leveling</h1>
    <a href="/author/chugong">Chugong</a>
    <a href="/genre/action">Action</a>
    <a href="/genre/fantasy">Fantasy</a>
    <span>Status : Completed</span>
  </div>
  <div class="panel-story-info-description">Hunters and dungeons.</div>
  <ul class="row-content-chapter">
    <li><a href="/manga/solo-leveling/chapter-3">Chapter 3</a></li>
    <li><a href="/manga/solo-leveling/chapter-2">Chapter 2</a></li>
    <li><a href="/manga/solo-leveling/chapter-1">Chapter 1</a></li>
  </ul>
</body>
</html>
"""

SEARCH_HTML = """\
<html>
<body>
  <div class="search-story-item">
    <a href="/manga/solo-leveling"><img src="/thumb/solo.jpg"></a>
    <h3><a href="/manga/solo-leveling">Solo Leveling</a></h3>
    <div class="item-story-desc">Weakest hunter.</div>
  </div>
  <div class="search-story-item">
    <a href="/manga/solo-leveling"><img src="/thumb/solo.jpg"></a>
    <h3><a href="/manga/solo-leveling">Solo Leveling</a></h3>
  </div>
  <div class="search-story-item">
    <h3><a href="https://www.manganato.gg/manga/solo-leveling-ragnarok">Solo Leveling: Ragnarok</a></h3>
  </div>
</body>
</html>
"""
