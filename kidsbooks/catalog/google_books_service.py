"""
Google Books integration for the catalogue.

The service only reads public volume data. It exposes one class,
``GoogleBooksSource``, with two queries:

* ``search()``: children's books matching a free-text query, used to
  top up local search results.

* ``fetch_new_releases()``: the newest children's titles, optionally
  ingested by the notification job before it matches preferences.

Volumes are mapped into ``BookCreate`` records; the caller decides
whether to store them. Failures (network, HTTP status, bad JSON) raise
``BookSourceError`` so callers can fall back to local data.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
import urllib.request
from datetime import date, datetime
from typing import Dict, List, Optional

from .. import config
from ..models import AGE_RANGES, BookCreate


logger = logging.getLogger(__name__)

GOOGLE_BOOKS_API_URL = "https://www.googleapis.com/books/v1/volumes"
NEW_RELEASE_WINDOW_DAYS = 92

_AGE_0_2, _AGE_3_5, _AGE_6_8, _AGE_9_12 = AGE_RANGES


class BookSourceError(RuntimeError):
    """The external book source could not be queried."""


def _http_get_json(url: str, timeout: int) -> dict:
    request = urllib.request.Request(url, headers={"Accept": "application/json"})
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            if response.status != 200:
                raise BookSourceError(f"Google Books returned status {response.status}")
            data = response.read().decode("utf-8", errors="ignore")
    except BookSourceError:
        raise
    except Exception as exc:
        raise BookSourceError(f"Error fetching {url}: {exc}") from exc
    try:
        return json.loads(data)
    except ValueError as exc:
        raise BookSourceError(f"Invalid JSON from Google Books: {exc}") from exc


def determine_age_range(volume_info: dict) -> str:
    """Guess the reader age range of a volume.

    Category keywords win, then "ages X-Y" clues in the description,
    then a page-count heuristic.
    """
    for category in volume_info.get("categories") or []:
        lowered = str(category).lower()
        if "baby" in lowered or "toddler" in lowered:
            return _AGE_0_2
        if "preschool" in lowered or "picture book" in lowered:
            return _AGE_3_5
        if "elementary" in lowered or "early reader" in lowered:
            return _AGE_6_8
        if "middle grade" in lowered or "preteen" in lowered:
            return _AGE_9_12

    description = volume_info.get("description") or ""
    clues = (
        (("ages 0-2", "ages 0 to 2"), _AGE_0_2),
        (("ages 3-5", "ages 3 to 5"), _AGE_3_5),
        (("ages 6-8", "ages 6 to 8"), _AGE_6_8),
        (("ages 9-12", "ages 9 to 12"), _AGE_9_12),
    )
    for needles, age_range in clues:
        if any(n in description for n in needles):
            return age_range

    page_count = volume_info.get("pageCount") or 0
    if page_count < 20:
        return _AGE_0_2
    if page_count < 50:
        return _AGE_3_5
    if page_count < 150:
        return _AGE_6_8
    return _AGE_9_12


def _parse_published(published: str) -> Optional[date]:
    # publishedDate is "YYYY", "YYYY-MM" or "YYYY-MM-DD".
    for fmt in ("%Y-%m-%d", "%Y-%m", "%Y"):
        try:
            return datetime.strptime(published, fmt).date()
        except ValueError:
            continue
    return None


def is_new_release(published: Optional[str], today: Optional[date] = None) -> bool:
    if not published:
        return False
    parsed = _parse_published(published.strip())
    if parsed is None:
        return False
    today = today or date.today()
    return (today - parsed).days <= NEW_RELEASE_WINDOW_DAYS


def volume_to_book(volume: dict, today: Optional[date] = None) -> Optional[BookCreate]:
    """Map one Google Books volume to a ``BookCreate`` (``None`` without an id)."""
    google_id = volume.get("id")
    if not google_id or not isinstance(google_id, str):
        return None
    info = volume.get("volumeInfo") or {}
    authors = [a for a in info.get("authors") or [] if isinstance(a, str)]
    categories = [c for c in info.get("categories") or [] if isinstance(c, str)]
    average = info.get("averageRating")
    rating = None
    if isinstance(average, (int, float)):
        rating = min(50, max(0, round(average * 10)))
    published = info.get("publishedDate") or ""
    return BookCreate(
        google_id=google_id,
        title=info.get("title") or "Unknown Title",
        author=", ".join(authors) if authors else "Unknown Author",
        description=info.get("description") or "",
        thumbnail=(info.get("imageLinks") or {}).get("thumbnail") or "",
        categories=categories,
        age_range=determine_age_range(info),
        published_date=published,
        rating=rating,
        is_new=is_new_release(published, today),
    )


class GoogleBooksSource:
    """Client for the Google Books volumes endpoint.

    Search results are cached per query for the life of the instance.
    """

    def __init__(self, api_key: Optional[str] = None, timeout: Optional[int] = None) -> None:
        self.api_key = config.google_books_api_key() if api_key is None else api_key
        self.timeout = timeout or config.external_timeout_seconds()
        self._search_cache: Dict[str, List[BookCreate]] = {}

    def _url(self, params: dict) -> str:
        if self.api_key:
            params = dict(params, key=self.api_key)
        return f"{GOOGLE_BOOKS_API_URL}?{urllib.parse.urlencode(params)}"

    def _fetch(self, params: dict) -> List[BookCreate]:
        data = _http_get_json(self._url(params), self.timeout)
        items = data.get("items") if isinstance(data, dict) else None
        if not isinstance(items, list):
            return []
        books = [volume_to_book(item) for item in items if isinstance(item, dict)]
        return [b for b in books if b is not None]

    def search(self, query: str) -> List[BookCreate]:
        key = query.strip().lower()
        if key in self._search_cache:
            return [b.model_copy() for b in self._search_cache[key]]
        books = self._fetch({"q": f"{query} subject:juvenile", "maxResults": 20})
        self._search_cache[key] = books
        logger.info("Google Books returned %d volumes for %r", len(books), query)
        return [b.model_copy() for b in books]

    def fetch_new_releases(self) -> List[BookCreate]:
        books = self._fetch(
            {
                "q": "subject:juvenile fiction",
                "orderBy": "newest",
                "maxResults": 20,
                "printType": "books",
            }
        )
        for book in books:
            book.is_new = True
        return books
