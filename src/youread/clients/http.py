"""HTTP fetching for the catalog clients, with retry on transient failures."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from youread.config import Settings

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Raised when a catalog request fails after all retries."""


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TimeoutException):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code == 429 or exc.response.status_code >= 500
    return False


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(_is_retryable),
    reraise=True,
)
def _get(url: str, settings: Settings, params: Any, headers: dict[str, str]) -> httpx.Response:
    with httpx.Client(timeout=settings.http_timeout, follow_redirects=True) as client:
        response = client.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response


def fetch(
    url: str,
    settings: Settings,
    params: Any = None,
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    """GET ``url``; raise :class:`ApiError` once retries are used up."""
    merged = {"User-Agent": settings.user_agent}
    merged.update(headers or {})
    try:
        response = _get(url, settings, params, merged)
    except httpx.HTTPError as exc:
        logger.error("Fetch failed for %s: %s", url, exc)
        raise ApiError(f"Failed to fetch {url}: {exc}") from exc
    logger.info("Fetched %d bytes from %s", len(response.content), url)
    return response
