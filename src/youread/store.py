"""Tracked-manga library persisted as a single JSON file.

The whole library is read and rewritten on every change; the last writer
wins.
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import ValidationError

from youread.models import (
    DEFAULT_READING_STATUS,
    READING_STATUSES,
    ImportSummary,
    MangaRecord,
    ReadingStatus,
    TrackedManga,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_LIBRARY_PATH = Path("youread_library.json")


class LibraryError(Exception):
    """Raised when the library file exists but cannot be read back."""


class LibraryStore:
    """CRUD over the list of tracked manga, keyed by id.

    Entries that no longer validate are skipped when reading and written back
    unchanged, so a single odd entry never costs the rest of the library.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or DEFAULT_LIBRARY_PATH
        self._unparsed: list[Any] = []

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> list[TrackedManga]:
        """Entries on disk; raises :class:`LibraryError` if the file is unreadable."""
        self._unparsed = []
        if not self._path.exists():
            return []
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise LibraryError(f"Could not read library {self._path}: {exc}") from exc
        if not isinstance(raw, list):
            raise LibraryError(f"Library {self._path} does not hold a list of entries")

        tracked: list[TrackedManga] = []
        for position, item in enumerate(raw):
            try:
                tracked.append(TrackedManga.model_validate(item))
            except ValidationError as exc:
                logger.warning("Skipping invalid library entry %d in %s: %s", position, self._path, exc)
                self._unparsed.append(item)
        return tracked

    def load(self) -> list[TrackedManga]:
        try:
            return self._read()
        except LibraryError as exc:
            logger.error("%s", exc)
            return []

    def save(self, items: Iterable[TrackedManga]) -> None:
        payload = [item.model_dump(mode="json") for item in items]
        payload.extend(self._unparsed)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
        logger.debug("Saved %d entries to %s", len(payload), self._path)

    def get(self, manga_id: str) -> Optional[TrackedManga]:
        return next((m for m in self.load() if m.id == manga_id), None)

    def add(self, manga: TrackedManga) -> bool:
        """Add ``manga`` unless its id is already tracked. Returns True if added."""
        tracked = self._read()
        if any(m.id == manga.id for m in tracked):
            return False
        tracked.append(manga)
        self.save(tracked)
        logger.info("Tracking %s (%s)", manga.title, manga.id)
        return True

    def update(self, manga_id: str, **changes) -> Optional[TrackedManga]:
        """Apply ``changes`` to the entry and stamp ``last_updated``."""
        tracked = self._read()
        for index, manga in enumerate(tracked):
            if manga.id == manga_id:
                data = manga.model_dump()
                data.update(changes)
                data["last_updated"] = utc_now()
                tracked[index] = TrackedManga.model_validate(data)
                self.save(tracked)
                return tracked[index]
        return None

    def remove(self, manga_id: str) -> bool:
        tracked = self._read()
        remaining = [m for m in tracked if m.id != manga_id]
        if len(remaining) == len(tracked):
            return False
        self.save(remaining)
        return True

    def import_all(
        self,
        records: Iterable[MangaRecord],
        reading_status: ReadingStatus = DEFAULT_READING_STATUS,
    ) -> ImportSummary:
        """
        Create-or-merge a batch of scraped records.

        Unknown ids are added with ``reading_status``. Known ids only gain
        information: a missing cover is filled in and chapter numbers move up
        to the scraped value, never down, so progress entered by hand survives.
        Within the batch the last record for an id wins.
        """
        batch: dict[str, MangaRecord] = {}
        for record in records:
            batch[record.id] = record

        tracked = self._read()
        index = {m.id: i for i, m in enumerate(tracked)}
        summary = ImportSummary()

        for record in batch.values():
            if record.id not in index:
                index[record.id] = len(tracked)
                tracked.append(TrackedManga.from_record(record, reading_status))
                summary.added += 1
                continue

            existing = tracked[index[record.id]]
            changes = _merge_changes(existing, record)
            if changes:
                changes["last_updated"] = utc_now()
                tracked[index[record.id]] = existing.model_copy(update=changes)
                summary.updated += 1
            else:
                summary.unchanged += 1

        self.save(tracked)
        logger.info(
            "Imported %d records: %d added, %d updated, %d unchanged",
            summary.total, summary.added, summary.updated, summary.unchanged,
        )
        return summary

    def stats(self) -> dict[str, int]:
        tracked = self.load()
        counts = Counter(m.reading_status for m in tracked)
        return {"total": len(tracked), **{status: counts.get(status, 0) for status in READING_STATUSES}}


def _merge_changes(existing: TrackedManga, record: MangaRecord) -> dict:
    changes: dict = {}
    if record.cover_image_url and not existing.cover_image:
        changes["cover_image"] = record.cover_image_url
    if not existing.source_url:
        changes["source_url"] = record.source_url
    for field in ("last_read_chapter", "total_chapters"):
        incoming = getattr(record, field)
        current = getattr(existing, field)
        if incoming is not None and (current is None or incoming > current):
            changes[field] = incoming
    return changes
