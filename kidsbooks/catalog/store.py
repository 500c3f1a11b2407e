"""
Catalogue helpers layered over the repository store.

``seed_sample_books`` loads the bundled sample dataset so a fresh
process has something to browse. ``search_books`` is the search flow
behind ``/api/books/search``: local results first, topped up from the
external book source when there are too few.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

from pydantic import ValidationError

from ..models import Book, BookCreate
from ..storage import Storage
from .google_books_service import BookSourceError


logger = logging.getLogger(__name__)

DATA_FILE = Path(__file__).resolve().parents[1] / "data" / "sample_books.json"


class BookSource(Protocol):
    def search(self, query: str) -> List[BookCreate]: ...

    def fetch_new_releases(self) -> List[BookCreate]: ...


def load_sample_books(path: Path = DATA_FILE) -> List[BookCreate]:
    """Read sample books from ``path``.

    Entries that fail validation are skipped with a warning. A missing
    or unreadable file yields an empty list.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        logger.warning("Could not load sample books from %s: %s", path, exc)
        return []

    books: List[BookCreate] = []
    for entry in raw if isinstance(raw, list) else []:
        try:
            books.append(BookCreate.model_validate(entry))
        except ValidationError as exc:
            title = entry.get("title") if isinstance(entry, dict) else entry
            logger.warning("Skipping invalid sample book %r: %s", title, exc)
    return books


def ingest_books(storage: Storage, books: Iterable[BookCreate]) -> List[Book]:
    """Store books not already known by ``google_id``; return the new rows."""
    created: List[Book] = []
    for data in books:
        book, inserted = storage.add_book(data)
        if inserted:
            created.append(book)
    return created


def seed_sample_books(storage: Storage, path: Path = DATA_FILE) -> int:
    created = ingest_books(storage, load_sample_books(path))
    logger.info("Seeded %d sample books", len(created))
    return len(created)


def search_books(
    storage: Storage,
    query: str,
    source: Optional[BookSource],
    min_local_results: int = 5,
) -> List[Book]:
    """Search the store, supplementing from ``source`` when results are thin.

    External books not yet stored are persisted and appended after the
    local matches. Source failures are logged and the local results are
    returned unchanged.
    """
    books = storage.search_books(query)
    if source is None or len(books) >= min_local_results:
        return books

    try:
        external = source.search(query)
    except (BookSourceError, ValidationError) as exc:
        logger.error("Error fetching books from Google Books: %s", exc)
        return books

    books.extend(ingest_books(storage, external))
    return books
