"""
New-release notifications.

``NotificationMatcher`` compares books flagged as new against each
user's stored preferences and creates one "New Book Release"
notification per (user, book). Re-running it over the same state
creates nothing new.

``NotificationScheduler`` runs the matcher on a background thread:
once shortly after startup, then every day at a fixed hour.
"""

from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from pydantic import ValidationError

from .catalog.google_books_service import BookSourceError
from .catalog.store import BookSource, ingest_books
from .models import (
    NEW_RELEASE_TITLE,
    NEW_RELEASE_TYPE,
    Book,
    Notification,
    NotificationCreate,
    UserPreferences,
)
from .storage import Storage


logger = logging.getLogger(__name__)


def matches_preferences(book: Book, prefs: UserPreferences, policy: str = "all") -> bool:
    """Return whether ``book`` fits ``prefs``.

    An empty preference list accepts every book on that dimension.
    ``policy="all"`` needs both the age range and the category to fit;
    ``policy="any"`` is satisfied by either one.
    """
    age_ranges = prefs.preferred_age_ranges or []
    categories = prefs.preferred_categories or []
    age_match = not age_ranges or book.age_range in age_ranges
    category_match = not categories or any(c in categories for c in book.categories or [])
    if policy == "any":
        return age_match or category_match
    return age_match and category_match


def release_message(book: Book) -> str:
    return f'"{book.title}" by {book.author or "Unknown Author"} is now available!'


class NotificationMatcher:
    def __init__(
        self,
        storage: Storage,
        policy: str = "all",
        book_source: Optional[BookSource] = None,
        ingest: bool = False,
    ) -> None:
        self.storage = storage
        self.policy = policy
        self.book_source = book_source
        self.ingest = ingest

    def _ingest_new_releases(self) -> None:
        if not (self.ingest and self.book_source is not None):
            return
        try:
            created = ingest_books(self.storage, self.book_source.fetch_new_releases())
        except (BookSourceError, ValidationError) as exc:
            logger.warning("Could not fetch new releases: %s", exc)
            return
        logger.info("Ingested %d new releases", len(created))

    def _already_notified(self, user_id: int, book_id: int) -> bool:
        return any(
            n.book_id == book_id and NEW_RELEASE_TITLE in n.title
            for n in self.storage.get_notifications(user_id)
        )

    def run(self) -> List[Notification]:
        """Run one matching pass and return the notifications created."""
        self._ingest_new_releases()

        new_books = self.storage.get_new_releases()
        if not new_books:
            logger.info("No new books found")
            return []

        created: List[Notification] = []
        for user in self.storage.list_users():
            prefs = self.storage.get_user_preferences(user.id)
            if prefs is None or not prefs.notifications_enabled:
                continue
            for book in new_books:
                if not matches_preferences(book, prefs, self.policy):
                    continue
                if self._already_notified(user.id, book.id):
                    continue
                notification = self.storage.create_notification(
                    NotificationCreate(
                        user_id=user.id,
                        title=NEW_RELEASE_TITLE,
                        message=release_message(book),
                        type=NEW_RELEASE_TYPE,
                        book_id=book.id,
                    )
                )
                created.append(notification)
                logger.info("Created notification for user %s about book %s", user.id, book.id)
        return created


def seconds_until_next_run(now: datetime, hour: int) -> float:
    """Seconds from ``now`` until the next ``hour:00`` (strictly in the future)."""
    target = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class NotificationScheduler:
    """Daemon thread running ``job`` after a delay and then once a day.

    A run that raises is logged; the next firing still happens. There
    is no timeout: a run that hangs delays the following one.
    """

    def __init__(
        self,
        job: Callable[[], object],
        startup_delay: float = 10,
        daily_hour: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.job = job
        self.startup_delay = startup_delay
        self.daily_hour = daily_hour
        self.clock = clock
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, name="kidsbooks-notifications", daemon=True
        )
        self._thread.start()
        logger.info(
            "Notification scheduler started (first run in %ss, daily at %02d:00)",
            self.startup_delay,
            self.daily_hour,
        )

    def stop(self, timeout: float = 5) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Notification scheduler stopped")

    def run_once(self) -> None:
        try:
            self.job()
        except Exception:
            logger.exception("Error checking for new books")

    def _loop(self) -> None:
        delay = self.startup_delay
        while not self._stop.wait(delay):
            self.run_once()
            delay = seconds_until_next_run(self.clock(), self.daily_hour)
