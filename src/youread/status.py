"""Progress slot for a running import, readable by an independent observer."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from youread.models import CrawlStatus

logger = logging.getLogger(__name__)


class StatusBoard:
    """Holds the latest crawl status and optionally mirrors it to a JSON file.

    Writes overwrite the previous status; nothing guarantees an observer sees
    every update.
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._latest: Optional[CrawlStatus] = None

    def publish(self, status: CrawlStatus) -> None:
        self._latest = status
        logger.info("Import progress: %s", status.message)
        if self._path is None:
            return
        try:
            self._path.write_text(status.model_dump_json(), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not write status file %s: %s", self._path, exc)

    def latest(self) -> Optional[CrawlStatus]:
        return self._latest


def read_status(path: Path) -> Optional[CrawlStatus]:
    """Read the status an import last mirrored to ``path``."""
    if not path.exists():
        return None
    try:
        return CrawlStatus.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, OSError, ValidationError):
        return None
