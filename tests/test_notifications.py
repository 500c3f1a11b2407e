"""Tests for the new-release matcher and its scheduler."""
from __future__ import annotations

import threading
from datetime import datetime

import pytest

from kidsbooks.models import NotificationCreate, UserCreate, UserPreferencesUpdate
from kidsbooks.notifications import (
    NotificationMatcher,
    NotificationScheduler,
    matches_preferences,
    seconds_until_next_run,
)

from conftest import FakeBookSource, make_book


@pytest.fixture
def demo(storage):
    return storage.get_user_by_username("demo")


def _set_prefs(storage, user_id, **kwargs):
    storage.update_user_preferences(user_id, UserPreferencesUpdate(**kwargs))


def test_example_scenario_notifies_once(storage, demo):
    book = storage.create_book(
        make_book("b1", title="Forest Quest", age_range="6-8 years", categories=["Adventure"], is_new=True)
    )
    _set_prefs(storage, demo.id, preferred_age_ranges=["6-8 years"], preferred_categories=[])
    matcher = NotificationMatcher(storage)

    created = matcher.run()

    assert len(created) == 1
    notification = created[0]
    assert notification.user_id == demo.id
    assert notification.book_id == book.id
    assert notification.title == "New Book Release"
    assert notification.type == "book_release"
    assert notification.message == '"Forest Quest" by Test Author is now available!'
    assert matcher.run() == []
    assert len(storage.get_notifications(demo.id)) == 1


def test_no_new_books_is_a_noop(storage, demo):
    storage.create_book(make_book("old", is_new=False))
    assert NotificationMatcher(storage).run() == []
    assert storage.get_notifications(demo.id) == []


def test_empty_preferences_match_every_new_book(storage, demo):
    storage.create_book(make_book("n1", is_new=True))
    storage.create_book(make_book("n2", is_new=True, age_range="0-2 years"))

    created = NotificationMatcher(storage).run()

    assert sorted(n.book_id for n in created) == [1, 2]


def test_all_policy_requires_both_dimensions(storage, demo):
    storage.create_book(make_book("age-only", age_range="6-8 years", categories=["Mystery"], is_new=True))
    both = storage.create_book(make_book("both", age_range="6-8 years", categories=["Fantasy"], is_new=True))
    _set_prefs(storage, demo.id, preferred_age_ranges=["6-8 years"], preferred_categories=["Fantasy"])

    created = NotificationMatcher(storage, policy="all").run()

    assert [n.book_id for n in created] == [both.id]


def test_any_policy_accepts_either_dimension(storage, demo):
    storage.create_book(make_book("age-only", age_range="6-8 years", categories=["Mystery"], is_new=True))
    storage.create_book(make_book("cat-only", age_range="0-2 years", categories=["Fantasy"], is_new=True))
    storage.create_book(make_book("neither", age_range="0-2 years", categories=["Mystery"], is_new=True))
    _set_prefs(storage, demo.id, preferred_age_ranges=["6-8 years"], preferred_categories=["Fantasy"])

    created = NotificationMatcher(storage, policy="any").run()

    assert sorted(n.book_id for n in created) == [1, 2]


def test_users_with_notifications_disabled_are_skipped(storage, demo):
    storage.create_book(make_book("n1", is_new=True))
    _set_prefs(storage, demo.id, notifications_enabled=False)

    assert NotificationMatcher(storage).run() == []


def test_every_user_is_considered(storage, demo):
    other = storage.create_user(UserCreate(username="other", password="x"))
    storage.create_book(make_book("n1", is_new=True, age_range="3-5 years"))
    _set_prefs(storage, demo.id, preferred_age_ranges=["9-12 years"])

    created = NotificationMatcher(storage).run()

    assert [n.user_id for n in created] == [other.id]


def test_existing_release_notification_prevents_duplicate(storage, demo):
    book = storage.create_book(make_book("n1", is_new=True))
    storage.create_notification(
        NotificationCreate(
            user_id=demo.id, title="New Book Release!", message="m", type="book_release", book_id=book.id
        )
    )

    assert NotificationMatcher(storage).run() == []


def test_matcher_does_not_modify_books(storage, demo):
    book = storage.create_book(make_book("n1", is_new=True))
    NotificationMatcher(storage).run()
    assert storage.get_book(book.id) == book


def test_ingest_new_releases_before_matching(storage, demo):
    source = FakeBookSource(new_releases=[make_book("ext-1", is_new=True)])
    matcher = NotificationMatcher(storage, book_source=source, ingest=True)

    created = matcher.run()

    stored = storage.get_book_by_google_id("ext-1")
    assert stored is not None and stored.is_new
    assert [n.book_id for n in created] == [stored.id]
    matcher.run()
    assert len(storage.get_books()) == 1


def test_ingest_failure_still_matches_local_books(storage, demo):
    storage.create_book(make_book("n1", is_new=True))
    matcher = NotificationMatcher(storage, book_source=FakeBookSource(fail=True), ingest=True)

    assert len(matcher.run()) == 1


def test_matches_preferences_with_missing_book_fields(storage, demo):
    book = storage.create_book(make_book("bare", is_new=True))
    prefs = storage.get_user_preferences(demo.id)
    assert matches_preferences(book, prefs) is True

    prefs = prefs.model_copy(update={"preferred_categories": ["Fantasy"]})
    assert matches_preferences(book, prefs) is False
    assert matches_preferences(book, prefs, policy="any") is True


def test_seconds_until_next_run():
    assert seconds_until_next_run(datetime(2024, 5, 1, 23, 0, 0), 0) == 3600
    assert seconds_until_next_run(datetime(2024, 5, 1, 0, 0, 0), 0) == 86400
    assert seconds_until_next_run(datetime(2024, 5, 1, 5, 30, 0), 6) == 1800


def test_scheduler_runs_job_after_startup_delay():
    ran = threading.Event()
    scheduler = NotificationScheduler(ran.set, startup_delay=0.01)

    scheduler.start()
    try:
        assert ran.wait(2)
        assert scheduler.running
    finally:
        scheduler.stop()
    assert not scheduler.running


def test_scheduler_survives_failing_job():
    calls = []

    def job():
        calls.append(1)
        raise RuntimeError("broken")

    scheduler = NotificationScheduler(job)
    scheduler.run_once()
    scheduler.run_once()
    assert len(calls) == 2
