"""Tests for youread.store module."""

from __future__ import annotations

import json

import pytest

from youread.models import TrackedManga
from youread.store import LibraryError, LibraryStore

from conftest import record


@pytest.fixture()
def store(tmp_path) -> LibraryStore:
    return LibraryStore(tmp_path / "library.json")


class TestLibraryStore:
    def test_load_missing_file(self, store):
        assert store.load() == []

    def test_load_corrupted_file(self, store):
        store.path.write_text("{not json", encoding="utf-8")
        assert store.load() == []

    def test_add_and_get(self, store):
        assert store.add(TrackedManga(id="a", title="A")) is True
        assert store.get("a").title == "A"
        assert store.get("missing") is None

    def test_add_duplicate(self, store):
        store.add(TrackedManga(id="a", title="A"))
        assert store.add(TrackedManga(id="a", title="Again")) is False
        assert len(store.load()) == 1
        assert store.get("a").title == "A"

    def test_save_writes_json_list(self, store):
        store.add(TrackedManga(id="a", title="A"))
        data = json.loads(store.path.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert data[0]["id"] == "a"

    def test_update(self, store):
        store.add(TrackedManga(id="a", title="A", last_updated="2020-01-01T00:00:00+00:00"))
        updated = store.update("a", reading_status="reading", last_read_chapter=4)
        assert updated.reading_status == "reading"
        assert updated.last_read_chapter == 4
        assert updated.last_updated != "2020-01-01T00:00:00+00:00"
        assert store.get("a").reading_status == "reading"

    def test_update_missing(self, store):
        assert store.update("missing", reading_status="reading") is None

    def test_update_validates(self, store):
        store.add(TrackedManga(id="a", title="A"))
        with pytest.raises(ValueError):
            store.update("a", reading_status="dropped")

    def test_remove(self, store):
        store.add(TrackedManga(id="a", title="A"))
        assert store.remove("a") is True
        assert store.remove("a") is False
        assert store.load() == []

    def test_stats(self, store):
        store.add(TrackedManga(id="a", title="A", reading_status="reading"))
        store.add(TrackedManga(id="b", title="B", reading_status="reading"))
        store.add(TrackedManga(id="c", title="C"))
        assert store.stats() == {"total": 3, "reading": 2, "completed": 0, "planning": 1, "paused": 0}


class TestImportAll:
    def test_adds_new_records(self, store):
        summary = store.import_all([record("a", last_read_chapter=3), record("b")])

        assert (summary.added, summary.updated, summary.unchanged) == (2, 0, 0)
        a = store.get("a")
        assert a.reading_status == "planning"
        assert a.last_read_chapter == 3
        assert a.source_url == "https://www.manganato.gg/manga/a"

    def test_custom_reading_status(self, store):
        store.import_all([record("a")], reading_status="reading")
        assert store.get("a").reading_status == "reading"

    def test_reimport_is_unchanged(self, store):
        store.import_all([record("a", last_read_chapter=3)])
        summary = store.import_all([record("a", last_read_chapter=3)])
        assert summary.unchanged == 1
        assert len(store.load()) == 1

    def test_chapters_only_move_up(self, store):
        store.add(TrackedManga(id="a", title="A", last_read_chapter=10, total_chapters=50))

        summary = store.import_all([record("a", last_read_chapter=7, total_chapters=60)])

        a = store.get("a")
        assert summary.updated == 1
        assert a.last_read_chapter == 10
        assert a.total_chapters == 60

    def test_keeps_user_fields(self, store):
        store.add(TrackedManga(id="a", title="My Title", reading_status="paused", genres=["Drama"]))

        store.import_all([record("a", title="Scraped", cover_image_url="https://cdn.example.com/a.jpg")])

        a = store.get("a")
        assert a.title == "My Title"
        assert a.reading_status == "paused"
        assert a.genres == ["Drama"]
        assert a.cover_image == "https://cdn.example.com/a.jpg"

    def test_existing_cover_is_kept(self, store):
        store.add(TrackedManga(id="a", title="A", cover_image="https://old.example/a.jpg",
                               source_url="https://www.manganato.gg/manga/a"))
        summary = store.import_all([record("a", cover_image_url="https://new.example/a.jpg")])
        assert store.get("a").cover_image == "https://old.example/a.jpg"
        assert summary.unchanged == 1

    def test_last_record_in_batch_wins(self, store):
        summary = store.import_all([record("a", last_read_chapter=1), record("a", last_read_chapter=5)])
        assert summary.added == 1
        assert store.get("a").last_read_chapter == 5

    def test_preserves_existing_order(self, store):
        store.add(TrackedManga(id="z", title="Z"))
        store.import_all([record("a"), record("z")])
        assert [m.id for m in store.load()] == ["z", "a"]


def _write_library(store: LibraryStore, entries) -> None:
    store.path.write_text(json.dumps(entries), encoding="utf-8")


class TestDamagedLibrary:
    ENTRIES = [
        {"id": "keep-me", "title": "Keep Me", "reading_status": "reading", "last_read_chapter": 42},
        {"id": "odd", "title": "Odd", "reading_status": "dropped"},
    ]

    def test_load_skips_only_invalid_entries(self, store):
        _write_library(store, self.ENTRIES)

        assert [m.id for m in store.load()] == ["keep-me"]

    def test_import_keeps_valid_and_invalid_entries(self, store):
        _write_library(store, self.ENTRIES)

        store.import_all([record("new")])

        raw = json.loads(store.path.read_text(encoding="utf-8"))
        assert [item["id"] for item in raw] == ["keep-me", "new", "odd"]
        assert raw[2]["reading_status"] == "dropped"
        keep = store.get("keep-me")
        assert keep.reading_status == "reading"
        assert keep.last_read_chapter == 42

    def test_writes_refuse_unreadable_file(self, store):
        store.path.write_text("[{broken", encoding="utf-8")

        with pytest.raises(LibraryError):
            store.import_all([record("new")])
        with pytest.raises(LibraryError):
            store.add(TrackedManga(id="a", title="A"))
        with pytest.raises(LibraryError):
            store.update("a", reading_status="reading")
        with pytest.raises(LibraryError):
            store.remove("a")

        assert store.path.read_text(encoding="utf-8") == "[{broken"

    def test_writes_refuse_non_list_file(self, store):
        _write_library(store, {"id": "a"})

        with pytest.raises(LibraryError):
            store.add(TrackedManga(id="b", title="B"))
        assert store.load() == []
