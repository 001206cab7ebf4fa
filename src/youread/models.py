"""Pydantic models for the tracker and the bulk import pipeline."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

ReadingStatus = Literal["reading", "completed", "planning", "paused"]
READING_STATUSES: tuple[str, ...] = ("reading", "completed", "planning", "paused")
DEFAULT_READING_STATUS: ReadingStatus = "planning"


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


class MangaRecord(BaseModel):
    """One manga found on a bookmark/history listing page."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    id: str = Field(min_length=1, description="Stable id derived from the manga URL slug")
    title: str = Field(min_length=1)
    cover_image_url: Optional[str] = Field(default=None, alias="coverImageUrl")
    source_url: str = Field(alias="sourceUrl", description="Absolute URL of the detail page")
    last_read_chapter: Optional[int] = Field(default=None, ge=0, alias="lastReadChapter")
    total_chapters: Optional[int] = Field(default=None, ge=0, alias="totalChapters")


class Manga(BaseModel):
    """Catalog details for a single manga."""

    id: str
    title: str
    description: Optional[str] = None
    cover_image: Optional[str] = None
    status: Optional[str] = None
    chapters: Optional[int] = None
    author: Optional[str] = None
    genres: list[str] = Field(default_factory=list)
    source_url: Optional[str] = None


class MangaSearchResult(BaseModel):
    id: str
    title: str
    cover_image: Optional[str] = None
    description: Optional[str] = None
    alt_titles: list[str] = Field(default_factory=list)


class TrackedManga(Manga):
    """A library entry: catalog details plus the user's reading progress."""

    last_read_chapter: Optional[int] = Field(default=None, ge=0)
    total_chapters: Optional[int] = Field(default=None, ge=0)
    reading_status: ReadingStatus = DEFAULT_READING_STATUS
    date_added: str = Field(default_factory=utc_now)
    last_updated: str = Field(default_factory=utc_now)

    @property
    def progress(self) -> Optional[int]:
        if not self.total_chapters or self.last_read_chapter is None:
            return None
        return round(self.last_read_chapter / self.total_chapters * 100)

    @classmethod
    def from_manga(cls, manga: Manga, reading_status: ReadingStatus = DEFAULT_READING_STATUS) -> TrackedManga:
        return cls(
            **manga.model_dump(),
            total_chapters=manga.chapters,
            reading_status=reading_status,
        )

    @classmethod
    def from_record(cls, record: MangaRecord, reading_status: ReadingStatus = DEFAULT_READING_STATUS) -> TrackedManga:
        return cls(
            id=record.id,
            title=record.title,
            cover_image=record.cover_image_url,
            source_url=record.source_url,
            chapters=record.total_chapters,
            last_read_chapter=record.last_read_chapter,
            total_chapters=record.total_chapters,
            reading_status=reading_status,
        )


class CrawlStatus(BaseModel):
    """Progress snapshot published after every crawled page."""

    message: str
    timestamp: str = Field(default_factory=utc_now)
    page: int = 0
    new_records: int = 0
    total: int = 0


class ImportSummary(BaseModel):
    added: int = 0
    updated: int = 0
    unchanged: int = 0

    @property
    def total(self) -> int:
        return self.added + self.updated + self.unchanged
