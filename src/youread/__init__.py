"""YouRead - personal manga tracker with a browser-driven bookmark importer."""

__version__ = "0.1.0"

from youread.crawler import BulkImportCrawler, InvalidTabState, run_import
from youread.models import Manga, MangaRecord, MangaSearchResult, TrackedManga
from youread.store import LibraryStore

__all__ = [
    "BulkImportCrawler",
    "InvalidTabState",
    "LibraryStore",
    "Manga",
    "MangaRecord",
    "MangaSearchResult",
    "TrackedManga",
    "run_import",
]
