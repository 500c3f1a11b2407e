"""Tests for favourites, recently viewed and following."""
from __future__ import annotations

import threading

import pytest

from conftest import make_book


@pytest.fixture
def user_id(storage):
    return storage.get_user_by_username("demo").id


@pytest.fixture
def book_ids(storage):
    return [storage.create_book(make_book(f"book-{i}")).id for i in range(1, 5)]


class TestFavorites:
    def test_add_is_idempotent(self, storage, user_id, book_ids):
        first = storage.add_favorite(user_id, book_ids[0])
        assert storage.is_favorite(user_id, book_ids[0]) is True

        second = storage.add_favorite(user_id, book_ids[0])

        assert second.id == first.id
        assert second.created_at == first.created_at
        assert storage.is_favorite(user_id, book_ids[0]) is True
        assert len(storage.get_favorites(user_id)) == 1

    def test_remove(self, storage, user_id, book_ids):
        assert storage.remove_favorite(user_id, book_ids[0]) is False

        storage.add_favorite(user_id, book_ids[0])
        assert storage.remove_favorite(user_id, book_ids[0]) is True
        assert storage.is_favorite(user_id, book_ids[0]) is False
        assert storage.remove_favorite(user_id, book_ids[0]) is False

    def test_get_favorites_resolves_books_and_drops_unknown(self, storage, user_id, book_ids):
        storage.add_favorite(user_id, book_ids[1])
        storage.add_favorite(user_id, 999)
        storage.add_favorite(user_id, book_ids[0])

        assert [b.id for b in storage.get_favorites(user_id)] == [book_ids[1], book_ids[0]]

    def test_favorites_are_per_user(self, storage, user_id, book_ids):
        storage.add_favorite(user_id, book_ids[0])
        assert storage.is_favorite(user_id + 1, book_ids[0]) is False
        assert storage.get_favorites(user_id + 1) == []

    def test_readd_after_remove_allocates_new_row(self, storage, user_id, book_ids):
        first = storage.add_favorite(user_id, book_ids[0])
        storage.remove_favorite(user_id, book_ids[0])
        again = storage.add_favorite(user_id, book_ids[0])
        assert again.id != first.id


class TestRecentlyViewed:
    def test_second_view_updates_timestamp_in_place(self, storage, user_id, book_ids):
        first = storage.add_recently_viewed(user_id, book_ids[0])
        second = storage.add_recently_viewed(user_id, book_ids[0])

        assert second.id == first.id
        assert second.viewed_at > first.viewed_at
        assert [b.id for b in storage.get_recently_viewed(user_id)] == [book_ids[0]]

    def test_most_recent_first_and_limit(self, storage, user_id, book_ids):
        for book_id in book_ids:
            storage.add_recently_viewed(user_id, book_id)
        storage.add_recently_viewed(user_id, book_ids[0])

        recent = storage.get_recently_viewed(user_id)
        assert [b.id for b in recent] == [book_ids[0], book_ids[3], book_ids[2], book_ids[1]]
        assert [b.id for b in storage.get_recently_viewed(user_id, limit=2)] == [book_ids[0], book_ids[3]]

    def test_limit_applies_before_dropping_unknown_books(self, storage, user_id, book_ids):
        storage.add_recently_viewed(user_id, book_ids[0])
        storage.add_recently_viewed(user_id, 999)

        assert storage.get_recently_viewed(user_id, limit=1) == []
        assert [b.id for b in storage.get_recently_viewed(user_id, limit=2)] == [book_ids[0]]

    def test_clear(self, storage, user_id, book_ids):
        storage.add_recently_viewed(user_id, book_ids[0])
        storage.add_recently_viewed(user_id + 1, book_ids[1])

        assert storage.clear_recently_viewed(user_id) is True
        assert storage.get_recently_viewed(user_id) == []
        assert len(storage.get_recently_viewed(user_id + 1)) == 1


class TestFollowing:
    def test_follow_author_is_idempotent(self, storage, user_id):
        first = storage.follow_author(user_id, 1)
        second = storage.follow_author(user_id, 1)

        assert second == first
        assert [a.name for a in storage.get_following_authors(user_id)] == ["Dr. Seuss"]
        assert storage.is_following_author(user_id, 1) is True

    def test_unfollow_author(self, storage, user_id):
        assert storage.unfollow_author(user_id, 1) is False
        storage.follow_author(user_id, 1)
        assert storage.unfollow_author(user_id, 1) is True
        assert storage.is_following_author(user_id, 1) is False

    def test_following_authors_drops_unknown_ids(self, storage, user_id):
        storage.follow_author(user_id, 3)
        storage.follow_author(user_id, 42)

        assert [a.name for a in storage.get_following_authors(user_id)] == ["Roald Dahl"]

    def test_follow_series(self, storage, user_id):
        first = storage.follow_series(user_id, 2)
        assert storage.follow_series(user_id, 2).id == first.id
        assert [s.name for s in storage.get_following_series(user_id)] == ["Percy Jackson & the Olympians"]
        assert storage.is_following_series(user_id, 2) is True
        assert storage.unfollow_series(user_id, 2) is True
        assert storage.unfollow_series(user_id, 2) is False
        assert storage.get_following_series(user_id) == []

    def test_follow_categories(self, storage, user_id):
        storage.follow_category(user_id, "Fantasy")
        storage.follow_category(user_id, "Mystery")
        storage.follow_category(user_id, "Fantasy")

        assert storage.get_following_categories(user_id) == ["Fantasy", "Mystery"]
        assert storage.is_following_category(user_id, "Mystery") is True
        assert storage.unfollow_category(user_id, "Fantasy") is True
        assert storage.unfollow_category(user_id, "Fantasy") is False
        assert storage.get_following_categories(user_id) == ["Mystery"]


def _race(n, fn):
    """Call ``fn`` from ``n`` threads released together; return the results."""
    barrier = threading.Barrier(n)
    results = []
    errors = []

    def worker():
        barrier.wait()
        try:
            results.append(fn())
        except Exception as exc:  # surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(10)
    assert errors == []
    assert len(results) == n
    return results


class TestConcurrentLinks:
    def test_add_favorite_from_many_threads_creates_one_row(self, storage, user_id, book_ids):
        rows = _race(32, lambda: storage.add_favorite(user_id, book_ids[0]))

        assert {r.id for r in rows} == {rows[0].id}
        assert len(storage.get_favorites(user_id)) == 1

    def test_follow_author_from_many_threads_creates_one_row(self, storage, user_id):
        rows = _race(32, lambda: storage.follow_author(user_id, 1))

        assert {r.id for r in rows} == {rows[0].id}
        assert len(storage.get_following_authors(user_id)) == 1

    def test_create_book_with_one_google_id_from_many_threads(self, storage):
        before = len(storage.get_books())
        books = _race(32, lambda: storage.create_book(make_book("contested")))

        assert {b.id for b in books} == {books[0].id}
        assert len(storage.get_books()) == before + 1

    def test_add_book_reports_exactly_one_insert(self, storage):
        results = _race(32, lambda: storage.add_book(make_book("contested")))

        assert sum(1 for _, inserted in results if inserted) == 1
