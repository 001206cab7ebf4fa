"""Centralized configuration loaded from .env."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv


def _load_env() -> None:
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)
    else:
        load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return cast(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    # Catalogs
    site_url: str = "https://www.manganato.gg"
    mangadex_api_url: str = "https://api.mangadex.org"
    mangadex_covers_url: str = "https://uploads.mangadex.org/covers"
    http_timeout: int = 30
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    # Local files
    library_path: str = "youread_library.json"
    status_file: str = ".youread_status.json"
    cookies_file: str = ""

    # Bulk import crawl
    max_pages: int = 50
    inject_attempts: int = 5
    extract_attempts: int = 10
    next_page_attempts: int = 5
    navigate_attempts: int = 3
    retry_delay: float = 1.5
    ready_timeout: float = 15.0
    ready_poll_interval: float = 0.5

    # Browser
    headless: bool = True

    def __post_init__(self) -> None:
        if self.max_pages < 1:
            raise ValueError("max_pages must be >= 1")
        for name in ("inject_attempts", "extract_attempts", "next_page_attempts", "navigate_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be >= 1")
        if self.retry_delay < 0 or self.ready_timeout < 0 or self.ready_poll_interval < 0:
            raise ValueError("delays and timeouts must not be negative")

    @classmethod
    def from_env(cls) -> Settings:
        _load_env()
        return cls(
            site_url=os.getenv("YOUREAD_SITE_URL", "https://www.manganato.gg").rstrip("/"),
            mangadex_api_url=os.getenv("MANGADEX_API_URL", "https://api.mangadex.org").rstrip("/"),
            http_timeout=_env_number("YOUREAD_HTTP_TIMEOUT", 30, int),
            library_path=os.getenv("YOUREAD_LIBRARY", "youread_library.json"),
            status_file=os.getenv("YOUREAD_STATUS_FILE", ".youread_status.json"),
            cookies_file=os.getenv("YOUREAD_COOKIES_FILE", ""),
            max_pages=_env_number("YOUREAD_MAX_PAGES", 50, int),
            retry_delay=_env_number("YOUREAD_RETRY_DELAY", 1.5, float),
            ready_timeout=_env_number("YOUREAD_READY_TIMEOUT", 15.0, float),
            headless=_env_bool("YOUREAD_HEADLESS", True),
        )
