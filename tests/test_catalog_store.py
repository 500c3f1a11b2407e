"""Tests for sample data loading and the search flow."""
from __future__ import annotations

import json

from fastapi.testclient import TestClient

from kidsbooks.catalog.store import ingest_books, load_sample_books, search_books, seed_sample_books
from kidsbooks.main import create_app
from kidsbooks.storage import MemStorage

from conftest import FakeBookSource, make_book


def test_bundled_sample_books_load():
    books = load_sample_books()
    assert len(books) >= 10
    assert len({b.google_id for b in books}) == len(books)
    assert any(b.title == "Princess and the Dragon" for b in books)


def test_invalid_entries_are_skipped(tmp_path):
    path = tmp_path / "books.json"
    path.write_text(
        json.dumps(
            [
                {"googleId": "ok", "title": "Fine", "author": "A"},
                {"googleId": "bad", "title": "Bad rating", "author": "A", "rating": 99},
                "not a book",
            ]
        ),
        encoding="utf-8",
    )
    assert [b.google_id for b in load_sample_books(path)] == ["ok"]


def test_missing_file_yields_no_books(tmp_path):
    assert load_sample_books(tmp_path / "nope.json") == []


def test_seed_is_idempotent(storage):
    first = seed_sample_books(storage)
    assert first > 0
    assert seed_sample_books(storage) == 0
    assert len(storage.get_books()) == first


def test_ingest_returns_only_new_books(storage):
    storage.create_book(make_book("known"))
    created = ingest_books(storage, [make_book("known"), make_book("fresh")])
    assert [b.google_id for b in created] == ["fresh"]


def test_search_without_source_is_local_only(storage):
    storage.create_book(make_book("d", title="Dragon"))
    assert [b.title for b in search_books(storage, "dragon", None)] == ["Dragon"]


def test_search_threshold(storage):
    storage.create_book(make_book("d", title="Dragon"))
    source = FakeBookSource(results=[make_book("ext", title="Dragon Two")])

    assert len(search_books(storage, "dragon", source, min_local_results=1)) == 1
    assert source.queries == []
    assert len(search_books(storage, "dragon", source, min_local_results=2)) == 2
    assert source.queries == ["dragon"]


def test_default_app_serves_sample_books(monkeypatch):
    monkeypatch.setenv("KIDSBOOKS_SEED_SAMPLE_BOOKS", "true")
    app = create_app(book_source=FakeBookSource(), start_scheduler=False)
    with TestClient(app) as client:
        titles = [b["title"] for b in client.get("/api/books/search", params={"query": "dragon"}).json()]
        assert "Princess and the Dragon" in titles
        new_books = client.get("/api/books", params={"isNew": "true"}).json()
        assert new_books and all(b["isNew"] for b in new_books)


class _StaleLookupStorage(MemStorage):
    """Store whose google_id lookup misses rows another request just added."""

    def get_book_by_google_id(self, google_id):
        return None


def test_ingest_does_not_report_rows_stored_meanwhile():
    storage = _StaleLookupStorage(seed=False)
    storage.create_book(make_book("raced"))

    created = ingest_books(storage, [make_book("raced"), make_book("fresh")])

    assert [b.google_id for b in created] == ["fresh"]


def test_search_does_not_repeat_a_concurrently_stored_book():
    storage = _StaleLookupStorage(seed=False)
    storage.create_book(make_book("raced", title="Dragon Tales"))
    source = FakeBookSource(results=[make_book("raced", title="Dragon Tales")])

    books = search_books(storage, "dragon", source, min_local_results=5)

    assert [b.google_id for b in books] == ["raced"]
