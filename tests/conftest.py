from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import List

import pytest
from fastapi.testclient import TestClient

from kidsbooks.catalog.google_books_service import BookSourceError
from kidsbooks.main import create_app
from kidsbooks.models import BookCreate
from kidsbooks.storage import MemStorage


class FakeClock:
    """Clock advancing one second per call, so timestamps never tie."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


class FakeBookSource:
    def __init__(self, results: List[BookCreate] = None, new_releases: List[BookCreate] = None, fail: bool = False):
        self.results = results or []
        self.new_releases = new_releases or []
        self.fail = fail
        self.queries: List[str] = []

    def search(self, query: str) -> List[BookCreate]:
        self.queries.append(query)
        if self.fail:
            raise BookSourceError("boom")
        return [b.model_copy() for b in self.results]

    def fetch_new_releases(self) -> List[BookCreate]:
        if self.fail:
            raise BookSourceError("boom")
        return [b.model_copy() for b in self.new_releases]


def make_book(google_id: str, **kwargs) -> BookCreate:
    data = {"title": google_id.title(), "author": "Test Author"}
    data.update(kwargs)
    return BookCreate(google_id=google_id, **data)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(clock):
    return MemStorage(clock=clock)


@pytest.fixture
def book_source():
    return FakeBookSource()


@pytest.fixture
def client(storage, book_source):
    app = create_app(storage=storage, book_source=book_source, start_scheduler=False)
    with TestClient(app) as c:
        yield c
