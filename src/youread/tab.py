"""The browser tab a bulk import drives, and the extractor endpoint living in it.

A tab answers three request kinds once its extractor endpoint is injected:

    {"kind": "extract"}   -> {"records": [MangaRecord JSON, ...]}
    {"kind": "nextPage"}  -> {"nextUrl": str | None}
    {"kind": "detail"}    -> {"manga": Manga JSON | None}

Navigating a tab tears the endpoint down; it has to be injected again on the
new page before requests succeed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from youread.sites.base import SiteExtractor

EXTRACT = "extract"
NEXT_PAGE = "nextPage"
DETAIL = "detail"


class TabError(Exception):
    """Base class for failures talking to a browser tab."""


class ChannelError(TabError):
    """The extractor endpoint is not (yet) reachable in the tab."""


class NavigationError(TabError):
    """The tab failed to start or finish a navigation."""


class TabClosedError(TabError):
    """The tab no longer exists."""


def is_transient(exc: BaseException) -> bool:
    """Channel and navigation hiccups are worth another attempt; nothing else is."""
    return isinstance(exc, (ChannelError, NavigationError))


class Tab(ABC):
    """Contract for a single browser tab owned by one import run."""

    site: SiteExtractor

    @abstractmethod
    async def current_url(self) -> str:
        ...

    @abstractmethod
    async def is_loaded(self) -> bool:
        """True once the tab reports its document load as complete."""
        ...

    @abstractmethod
    async def navigate(self, url: str) -> None:
        """Start loading ``url``; does not wait for the load to finish."""
        ...

    @abstractmethod
    async def inject_extractor(self) -> None:
        """(Re-)establish the extractor endpoint on the currently loaded page."""
        ...

    @abstractmethod
    async def send(self, message: dict[str, Any]) -> dict[str, Any]:
        """
        Deliver a request to the extractor endpoint and return its response.

        Raises:
            ChannelError: the endpoint is not present on the current page.
            TabClosedError: the tab is gone.
        """
        ...
