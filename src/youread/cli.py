"""Command-line interface for YouRead."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from youread.clients import MangaDexClient, ManganatoClient, is_manganato_url
from youread.config import Settings
from youread.crawler import InvalidTabState, run_detail_import, run_import
from youread.models import READING_STATUSES, MangaRecord, TrackedManga
from youread.recommendations import RecommendationError, recommend
from youread.retry import with_retries
from youread.sites import get_site, list_sites
from youread.status import StatusBoard, read_status
from youread.store import LibraryError, LibraryStore
from youread.tab import EXTRACT, TabError

logger = logging.getLogger(__name__)

SEARCH_SOURCES = ("all", "mangadex", "manganato")
MIN_QUERY_LENGTH = 2

_records_adapter = TypeAdapter(list[MangaRecord])


def _out(msg: str = "") -> None:
    """Print a status message to stderr so it doesn't mix with JSON output."""
    print(msg, file=sys.stderr, flush=True)


def _emit_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="youread",
        description="Track the manga you read and import your MangaNato bookmarks.",
    )
    parser.add_argument("--library", default=None, help="Library JSON file (default: from .env YOUREAD_LIBRARY)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    search = sub.add_parser("search", help="Search MangaDex and MangaNato, or look up a MangaNato URL")
    search.add_argument("query")
    search.add_argument("--source", choices=SEARCH_SOURCES, default="all")
    search.add_argument("--tag", action="store_true", help="Treat the query as a MangaDex genre or tag name")

    track = sub.add_parser("track", help="Add a manga to the library by id or MangaNato URL")
    track.add_argument("target", help="MangaDex id, manganato_<slug> id, or MangaNato URL")
    track.add_argument("--status", choices=READING_STATUSES, default="planning")

    lst = sub.add_parser("list", help="Show tracked manga")
    lst.add_argument("--status", choices=READING_STATUSES, default=None)

    update = sub.add_parser("update", help="Edit reading progress of a tracked manga")
    update.add_argument("id")
    update.add_argument("--status", choices=READING_STATUSES, default=None)
    update.add_argument("--last-read", type=int, default=None)
    update.add_argument("--total", type=int, default=None)

    remove = sub.add_parser("remove", help="Stop tracking a manga")
    remove.add_argument("id")

    rec = sub.add_parser("recommend", help="Suggest manga based on what you read")
    rec.add_argument("--limit", type=int, default=20)

    imp = sub.add_parser("import", help="Collect bookmarks from every listing page in a browser tab")
    imp.add_argument(
        "url",
        help="Bookmark or history page URL (e.g. https://www.manganato.gg/bookmark), or a single manga page",
    )
    imp.add_argument("--site", choices=list_sites(), default="manganato")
    imp.add_argument(
        "--max-pages",
        type=int,
        default=None,
        help="Safety limit on pages to visit (default: 50). The crawl stops by itself after two empty pages.",
    )
    imp.add_argument("--current-page-only", action="store_true", help="Import only the first page")
    imp.add_argument("--headed", action="store_true", help="Show the browser window")
    imp.add_argument("--cookies", default=None, help="Exported cookies JSON for a logged-in session")
    imp.add_argument("-o", "--output", default=None, help="Also write the collected batch to this JSON file")
    imp.add_argument("--dry-run", action="store_true", help="Collect but do not touch the library")

    imp_file = sub.add_parser("import-file", help="Import a batch previously written with import -o")
    imp_file.add_argument("path")

    sub.add_parser("status", help="Show progress of the running import")
    return parser


async def _collect_from_browser(
    url: str,
    site_name: str,
    settings: Settings,
    max_pages: int | None,
    current_page_only: bool,
) -> list[MangaRecord]:
    """Open ``url`` in a browser tab and collect from it.

    A detail page yields its one manga. A listing page is extracted as page 1
    and, unless ``current_page_only``, crawled onwards.
    """
    from youread.browser import open_browser, open_tab

    site = get_site(site_name, settings)
    async with open_browser(settings) as context:
        tab = await open_tab(context, url, site, settings)

        if site.is_detail_page(url):
            found = await run_detail_import(tab, settings=settings)
            _out(f"  Manga page: {found.title if found else 'nothing found'}")
            return [found] if found else []

        async def first_page() -> dict:
            await tab.inject_extractor()
            return await tab.send({"kind": EXTRACT})

        response = await with_retries(
            first_page,
            attempts=settings.extract_attempts,
            delay=settings.retry_delay,
            default={"records": []},
            label="extract page 1",
        )
        seed = _records_adapter.validate_python(response.get("records") or [])
        _out(f"  Page 1:   {len(seed)} manga found")
        if current_page_only:
            return seed

        board = StatusBoard(Path(settings.status_file) if settings.status_file else None)
        return await run_import(tab, seed, max_pages, settings=settings, status_board=board)


def _cmd_search(args, settings: Settings) -> int:
    query = args.query.strip()
    if len(query) < MIN_QUERY_LENGTH:
        _out(f"Query must be at least {MIN_QUERY_LENGTH} characters")
        return 1

    if is_manganato_url(query):
        manga = ManganatoClient(settings).get_details(query)
        if manga is None:
            _out("Could not load that MangaNato page")
            return 1
        _emit_json([manga.model_dump(mode="json")])
        return 0

    if args.tag:
        if args.source == "manganato":
            _out("--tag searches MangaDex tags; use --source mangadex or all")
            return 1
        results = MangaDexClient(settings).search_by_tag(query)
        _out(f"{len(results)} results for tag {query}")
        _emit_json([r.model_dump(mode="json") for r in results])
        return 0

    results = []
    if args.source in ("all", "mangadex"):
        results.extend(MangaDexClient(settings).search(query))
    if args.source in ("all", "manganato"):
        results.extend(ManganatoClient(settings).search(query))
    _out(f"{len(results)} results")
    _emit_json([r.model_dump(mode="json") for r in results])
    return 0


def _cmd_track(args, store: LibraryStore, settings: Settings) -> int:
    target = args.target.strip()
    if is_manganato_url(target):
        manga = ManganatoClient(settings).get_details(target)
    elif target.startswith("manganato_"):
        manga = ManganatoClient(settings).get_details_by_id(target)
    else:
        manga = MangaDexClient(settings).get_details(target)

    if manga is None:
        _out(f"Could not load details for {target}")
        return 1
    if store.add(TrackedManga.from_manga(manga, args.status)):
        _out(f"Added {manga.title} ({manga.id})")
    else:
        _out(f"{manga.title} is already tracked")
    return 0


def _cmd_list(args, store: LibraryStore) -> int:
    stats = store.stats()
    _out(
        f"Total {stats['total']} | reading {stats['reading']} | completed {stats['completed']} "
        f"| planning {stats['planning']} | paused {stats['paused']}"
    )
    entries = [m for m in store.load() if args.status is None or m.reading_status == args.status]
    if not entries:
        _out("No manga tracked yet" if args.status is None else f"No {args.status} manga")
        return 0
    for manga in entries:
        progress = ""
        if manga.last_read_chapter is not None and manga.total_chapters is not None:
            progress = f"  ch {manga.last_read_chapter}/{manga.total_chapters} ({manga.progress}%)"
        print(f"{manga.id}  {manga.title}  [{manga.reading_status}]{progress}")
    return 0


def _cmd_update(args, store: LibraryStore) -> int:
    changes = {}
    if args.status is not None:
        changes["reading_status"] = args.status
    if args.last_read is not None:
        changes["last_read_chapter"] = args.last_read
    if args.total is not None:
        changes["total_chapters"] = args.total
    if not changes:
        _out("Nothing to update")
        return 1
    try:
        updated = store.update(args.id, **changes)
    except ValidationError as exc:
        _out(f"Invalid update: {exc}")
        return 1
    if updated is None:
        _out(f"{args.id} is not tracked")
        return 1
    _out(f"Updated {updated.title}")
    return 0


def _cmd_remove(args, store: LibraryStore) -> int:
    if not store.remove(args.id):
        _out(f"{args.id} is not tracked")
        return 1
    _out(f"Removed {args.id}")
    return 0


def _cmd_recommend(args, store: LibraryStore, settings: Settings) -> int:
    try:
        results = recommend(store.load(), MangaDexClient(settings), limit=args.limit)
    except RecommendationError as exc:
        _out(str(exc))
        return 1
    _out(f"{len(results)} recommendations")
    _emit_json([r.model_dump(mode="json") for r in results])
    return 0


def _cmd_import(args, store: LibraryStore, settings: Settings) -> int:
    overrides = {}
    if args.headed:
        overrides["headless"] = False
    if args.cookies:
        overrides["cookies_file"] = args.cookies
    if overrides:
        settings = replace(settings, **overrides)
    if args.max_pages is not None and args.max_pages < 1:
        _out("--max-pages must be at least 1")
        return 1
    site = get_site(args.site, settings)
    if not (site.is_listing_page(args.url) or site.is_detail_page(args.url)):
        _out(f"[!] {args.url} is not a {site.name} bookmark, history or manga page")
        return 1

    _out(f"Collecting manga from {args.url} ...")
    try:
        records = asyncio.run(_collect_from_browser(
            args.url, args.site, settings, args.max_pages, args.current_page_only,
        ))
    except InvalidTabState as exc:
        _out(f"[!] {exc}")
        return 1
    except TabError as exc:
        _out(f"[!] Browser error: {exc}")
        return 1

    _out(f"Collected {len(records)} manga")
    if args.output:
        Path(args.output).write_text(
            _records_adapter.dump_json(records, by_alias=True, indent=2).decode("utf-8"),
            encoding="utf-8",
        )
        _out(f"Batch written to {args.output}")
    if args.dry_run:
        return 0

    summary = store.import_all(records)
    _emit_json(summary.model_dump())
    return 0


def _cmd_import_file(args, store: LibraryStore) -> int:
    path = Path(args.path)
    try:
        records = _records_adapter.validate_json(path.read_bytes())
    except OSError as exc:
        _out(f"Could not read {path}: {exc}")
        return 1
    except ValidationError as exc:
        _out(f"{path} is not a valid import batch: {exc}")
        return 1
    summary = store.import_all(records)
    _emit_json(summary.model_dump())
    return 0


def _cmd_status(settings: Settings) -> int:
    status = read_status(Path(settings.status_file))
    if status is None:
        _out("No import progress recorded")
        return 1
    print(f"{status.timestamp}  {status.message}")
    return 0


def _dispatch(args, store: LibraryStore, settings: Settings) -> int:
    if args.cmd == "search":
        return _cmd_search(args, settings)
    if args.cmd == "track":
        return _cmd_track(args, store, settings)
    if args.cmd == "list":
        return _cmd_list(args, store)
    if args.cmd == "update":
        return _cmd_update(args, store)
    if args.cmd == "remove":
        return _cmd_remove(args, store)
    if args.cmd == "recommend":
        return _cmd_recommend(args, store, settings)
    if args.cmd == "import":
        return _cmd_import(args, store, settings)
    if args.cmd == "import-file":
        return _cmd_import_file(args, store)
    if args.cmd == "status":
        return _cmd_status(settings)
    return 2


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        settings = Settings.from_env()
    except ValueError as exc:
        _out(f"Invalid configuration: {exc}")
        return 1
    if args.library:
        settings = replace(settings, library_path=args.library)
    store = LibraryStore(Path(settings.library_path))

    try:
        return _dispatch(args, store, settings)
    except LibraryError as exc:
        _out(f"[!] {exc}. Fix or move the file; nothing was written.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
