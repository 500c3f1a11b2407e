"""
Repository store for the kids books API.

``Storage`` is the repository interface used by the routers and the
notification job; ``MemStorage`` keeps every entity in process memory.
Nothing here survives a restart. Swapping in a database means writing
another ``Storage`` implementation, the callers do not change.

Each entity type has its own id sequence starting at 1. Rows handed
back to callers are copies, so editing a returned model never changes
the stored one; use the ``update_*`` methods for that.

Join tables (favourites, recently viewed, following) are indexed by
``(user_id, target)`` so existence checks do not scan the table.
"""

from __future__ import annotations

import abc
import functools
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Hashable, List, Optional, Tuple

from .models import (
    Author,
    AuthorCreate,
    Book,
    BookCreate,
    BookFilter,
    BookSeries,
    BookSeriesCreate,
    BookUpdate,
    Favorite,
    FollowingAuthor,
    FollowingCategory,
    FollowingSeries,
    Notification,
    NotificationCreate,
    RecentlyViewed,
    User,
    UserCreate,
    UserPreferences,
    UserPreferencesCreate,
    UserPreferencesUpdate,
)


logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Storage(abc.ABC):
    """Repository interface. Lookups return ``None``/``False``/``[]`` on absence."""

    # users
    @abc.abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abc.abstractmethod
    def create_user(self, data: UserCreate) -> User: ...

    @abc.abstractmethod
    def list_users(self) -> List[User]: ...

    # books
    @abc.abstractmethod
    def get_book(self, book_id: int) -> Optional[Book]: ...

    @abc.abstractmethod
    def get_book_by_google_id(self, google_id: str) -> Optional[Book]: ...

    @abc.abstractmethod
    def create_book(self, data: BookCreate) -> Book: ...

    @abc.abstractmethod
    def add_book(self, data: BookCreate) -> Tuple[Book, bool]:
        """Like ``create_book``, also reporting whether a row was inserted."""

    @abc.abstractmethod
    def update_book(self, book_id: int, data: BookUpdate) -> Optional[Book]: ...

    @abc.abstractmethod
    def get_books(self, options: Optional[BookFilter] = None) -> List[Book]: ...

    @abc.abstractmethod
    def search_books(self, query: str) -> List[Book]: ...

    @abc.abstractmethod
    def get_new_releases(self) -> List[Book]: ...

    # preferences
    @abc.abstractmethod
    def get_user_preferences(self, user_id: int) -> Optional[UserPreferences]: ...

    @abc.abstractmethod
    def create_user_preferences(self, data: UserPreferencesCreate) -> UserPreferences: ...

    @abc.abstractmethod
    def update_user_preferences(
        self, user_id: int, data: UserPreferencesUpdate
    ) -> Optional[UserPreferences]: ...

    # favourites
    @abc.abstractmethod
    def get_favorites(self, user_id: int) -> List[Book]: ...

    @abc.abstractmethod
    def add_favorite(self, user_id: int, book_id: int) -> Favorite: ...

    @abc.abstractmethod
    def remove_favorite(self, user_id: int, book_id: int) -> bool: ...

    @abc.abstractmethod
    def is_favorite(self, user_id: int, book_id: int) -> bool: ...

    # notifications
    @abc.abstractmethod
    def get_notifications(self, user_id: int) -> List[Notification]: ...

    @abc.abstractmethod
    def create_notification(self, data: NotificationCreate) -> Notification: ...

    @abc.abstractmethod
    def mark_notification_as_read(self, notification_id: int) -> Optional[Notification]: ...

    @abc.abstractmethod
    def mark_all_notifications_as_read(self, user_id: int) -> bool: ...

    @abc.abstractmethod
    def get_unread_notification_count(self, user_id: int) -> int: ...

    # recently viewed
    @abc.abstractmethod
    def get_recently_viewed(self, user_id: int, limit: int = 10) -> List[Book]: ...

    @abc.abstractmethod
    def add_recently_viewed(self, user_id: int, book_id: int) -> RecentlyViewed: ...

    @abc.abstractmethod
    def clear_recently_viewed(self, user_id: int) -> bool: ...

    # authors
    @abc.abstractmethod
    def get_authors(self) -> List[Author]: ...

    @abc.abstractmethod
    def get_author(self, author_id: int) -> Optional[Author]: ...

    @abc.abstractmethod
    def get_author_by_name(self, name: str) -> Optional[Author]: ...

    @abc.abstractmethod
    def create_author(self, data: AuthorCreate) -> Author: ...

    # series
    @abc.abstractmethod
    def get_book_series(self) -> List[BookSeries]: ...

    @abc.abstractmethod
    def get_book_series_by_id(self, series_id: int) -> Optional[BookSeries]: ...

    @abc.abstractmethod
    def get_book_series_by_name(self, name: str) -> Optional[BookSeries]: ...

    @abc.abstractmethod
    def create_book_series(self, data: BookSeriesCreate) -> BookSeries: ...

    # following
    @abc.abstractmethod
    def get_following_authors(self, user_id: int) -> List[Author]: ...

    @abc.abstractmethod
    def follow_author(self, user_id: int, author_id: int) -> FollowingAuthor: ...

    @abc.abstractmethod
    def unfollow_author(self, user_id: int, author_id: int) -> bool: ...

    @abc.abstractmethod
    def is_following_author(self, user_id: int, author_id: int) -> bool: ...

    @abc.abstractmethod
    def get_following_series(self, user_id: int) -> List[BookSeries]: ...

    @abc.abstractmethod
    def follow_series(self, user_id: int, series_id: int) -> FollowingSeries: ...

    @abc.abstractmethod
    def unfollow_series(self, user_id: int, series_id: int) -> bool: ...

    @abc.abstractmethod
    def is_following_series(self, user_id: int, series_id: int) -> bool: ...

    @abc.abstractmethod
    def get_following_categories(self, user_id: int) -> List[str]: ...

    @abc.abstractmethod
    def follow_category(self, user_id: int, category: str) -> FollowingCategory: ...

    @abc.abstractmethod
    def unfollow_category(self, user_id: int, category: str) -> bool: ...

    @abc.abstractmethod
    def is_following_category(self, user_id: int, category: str) -> bool: ...


class _Sequence:
    """Monotonic id allocator for one entity type."""

    def __init__(self, start: int = 1) -> None:
        self._next = start

    def allocate(self) -> int:
        value = self._next
        self._next += 1
        return value


class _Table:
    """Rows of one entity type keyed by id, plus that type's sequence."""

    def __init__(self) -> None:
        self.rows: Dict[int, object] = {}
        self.seq = _Sequence()

    def insert(self, build: Callable[[int], object]):
        row = build(self.seq.allocate())
        self.rows[row.id] = row  # type: ignore[attr-defined]
        return row

    def values(self) -> List:
        return list(self.rows.values())


class _LinkTable(_Table):
    """Join rows unique per ``(user_id, target)``.

    ``target_field`` names the attribute holding the linked key
    (``book_id``, ``author_id``, ``category`` ...).
    """

    def __init__(self, target_field: str) -> None:
        super().__init__()
        self.target_field = target_field
        self._index: Dict[Tuple[int, Hashable], int] = {}

    def _key(self, row) -> Tuple[int, Hashable]:
        return (row.user_id, getattr(row, self.target_field))

    def find(self, user_id: int, target: Hashable):
        row_id = self._index.get((user_id, target))
        return self.rows.get(row_id) if row_id is not None else None

    def insert(self, build: Callable[[int], object]):
        row = super().insert(build)
        self._index[self._key(row)] = row.id  # type: ignore[attr-defined]
        return row

    def replace(self, row) -> None:
        # Re-inserting moves the row to the end of iteration order.
        self.rows.pop(row.id, None)
        self.rows[row.id] = row

    def remove(self, user_id: int, target: Hashable) -> bool:
        row_id = self._index.pop((user_id, target), None)
        if row_id is None:
            return False
        self.rows.pop(row_id, None)
        return True

    def for_user(self, user_id: int) -> List:
        return [row for row in self.rows.values() if row.user_id == user_id]  # type: ignore[attr-defined]


def _copy(row):
    return row.model_copy(deep=True) if row is not None else None


def _synchronized(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)

    return wrapper


SEED_AUTHORS = [
    AuthorCreate(
        name="Dr. Seuss",
        bio="Theodor Seuss Geisel was an American children's author and cartoonist.",
    ),
    AuthorCreate(
        name="J.K. Rowling",
        bio="British author best known for the Harry Potter series.",
    ),
    AuthorCreate(
        name="Roald Dahl",
        bio="British novelist, short-story writer, poet, and screenwriter.",
    ),
    AuthorCreate(
        name="Beverly Cleary",
        bio="American writer of children's and young adult fiction.",
    ),
    AuthorCreate(
        name="Rick Riordan",
        bio="American author known for writing the Percy Jackson & the Olympians series.",
    ),
]

SEED_SERIES = [
    BookSeriesCreate(
        name="Harry Potter",
        description="A series of fantasy novels written by British author J. K. Rowling.",
    ),
    BookSeriesCreate(
        name="Percy Jackson & the Olympians",
        description="A pentalogy of fantasy adventure novels by American author Rick Riordan.",
    ),
    BookSeriesCreate(
        name="Chronicles of Narnia",
        description="A series of fantasy novels by British author C. S. Lewis.",
    ),
    BookSeriesCreate(
        name="Diary of a Wimpy Kid",
        description="A series of fiction books written by American author and cartoonist Jeff Kinney.",
    ),
    BookSeriesCreate(
        name="The Magic Tree House",
        description="An American series of children's books written by Mary Pope Osborne.",
    ),
]


class MemStorage(Storage):
    """In-memory ``Storage``.

    Every public method runs under one re-entrant lock: FastAPI serves
    sync endpoints from a thread pool and the notification job runs on
    its own thread, so check-then-insert sequences must not interleave.

    Parameters
    ----------
    seed : bool
        When true, create the demo user, the sample authors and the
        sample series.
    demo_username, demo_password : str
        Credentials of the seeded demo user.
    clock : callable, optional
        Returns the current time; tests pass a fake one.
    """

    def __init__(
        self,
        seed: bool = True,
        demo_username: str = "demo",
        demo_password: str = "password",
        clock: Optional[Clock] = None,
    ) -> None:
        self._lock = threading.RLock()
        self._now: Clock = clock or _utcnow

        self._users = _Table()
        self._books = _Table()
        self._preferences = _Table()
        self._notifications = _Table()
        self._authors = _Table()
        self._series = _Table()
        self._favorites = _LinkTable("book_id")
        self._recently_viewed = _LinkTable("book_id")
        self._following_authors = _LinkTable("author_id")
        self._following_series = _LinkTable("series_id")
        self._following_categories = _LinkTable("category")

        if seed:
            self.create_user(UserCreate(username=demo_username, password=demo_password))
            for author in SEED_AUTHORS:
                self.create_author(author)
            for series in SEED_SERIES:
                self.create_book_series(series)
            logger.debug(
                "Seeded store with user %r, %d authors, %d series",
                demo_username,
                len(SEED_AUTHORS),
                len(SEED_SERIES),
            )

    # ------------------------------------------------------------------
    # Users

    @_synchronized
    def get_user(self, user_id: int) -> Optional[User]:
        return _copy(self._users.rows.get(user_id))

    @_synchronized
    def get_user_by_username(self, username: str) -> Optional[User]:
        return _copy(next((u for u in self._users.values() if u.username == username), None))

    @_synchronized
    def create_user(self, data: UserCreate) -> User:
        user = self._users.insert(lambda i: User(id=i, **data.model_dump()))
        # Every user starts with an empty preferences row; both rows or neither.
        try:
            self.create_user_preferences(UserPreferencesCreate(user_id=user.id))
        except Exception:
            self._users.rows.pop(user.id, None)
            raise
        return _copy(user)

    @_synchronized
    def list_users(self) -> List[User]:
        return [_copy(u) for u in sorted(self._users.values(), key=lambda u: u.id)]

    # ------------------------------------------------------------------
    # Books

    @_synchronized
    def get_book(self, book_id: int) -> Optional[Book]:
        return _copy(self._books.rows.get(book_id))

    @_synchronized
    def get_book_by_google_id(self, google_id: str) -> Optional[Book]:
        return _copy(next((b for b in self._books.values() if b.google_id == google_id), None))

    @_synchronized
    def create_book(self, data: BookCreate) -> Book:
        return self.add_book(data)[0]

    @_synchronized
    def add_book(self, data: BookCreate) -> Tuple[Book, bool]:
        # google_id is unique: a second create returns the stored book.
        existing = next((b for b in self._books.values() if b.google_id == data.google_id), None)
        if existing is not None:
            return _copy(existing), False
        book = self._books.insert(lambda i: Book(id=i, **data.model_dump()))
        return _copy(book), True

    @_synchronized
    def update_book(self, book_id: int, data: BookUpdate) -> Optional[Book]:
        book = self._books.rows.get(book_id)
        if book is None:
            return None
        updated = book.model_copy(update=data.model_dump(exclude_unset=True), deep=True)
        self._books.rows[book_id] = updated
        return _copy(updated)

    @_synchronized
    def get_books(self, options: Optional[BookFilter] = None) -> List[Book]:
        opts = options or BookFilter()
        books = self._books.values()

        if opts.category:
            books = [b for b in books if opts.category in (b.categories or [])]
        if opts.age_range:
            books = [b for b in books if b.age_range == opts.age_range]
        if opts.is_new is not None:
            books = [b for b in books if b.is_new == opts.is_new]

        # Higher ids were created later.
        books.sort(key=lambda b: b.id, reverse=True)

        if opts.offset and opts.limit:
            books = books[opts.offset:opts.offset + opts.limit]
        elif opts.limit:
            books = books[:opts.limit]
        return [_copy(b) for b in books]

    @_synchronized
    def search_books(self, query: str) -> List[Book]:
        needle = query.lower()

        def _matches(book: Book) -> bool:
            return (
                needle in book.title.lower()
                or needle in book.author.lower()
                or needle in (book.description or "").lower()
            )

        return [_copy(b) for b in self._books.values() if _matches(b)]

    @_synchronized
    def get_new_releases(self) -> List[Book]:
        return [_copy(b) for b in self._books.values() if b.is_new]

    # ------------------------------------------------------------------
    # Preferences

    def _find_preferences(self, user_id: int) -> Optional[UserPreferences]:
        return next((p for p in self._preferences.values() if p.user_id == user_id), None)

    @_synchronized
    def get_user_preferences(self, user_id: int) -> Optional[UserPreferences]:
        return _copy(self._find_preferences(user_id))

    @_synchronized
    def create_user_preferences(self, data: UserPreferencesCreate) -> UserPreferences:
        prefs = self._preferences.insert(lambda i: UserPreferences(id=i, **data.model_dump()))
        return _copy(prefs)

    @_synchronized
    def update_user_preferences(
        self, user_id: int, data: UserPreferencesUpdate
    ) -> Optional[UserPreferences]:
        prefs = self._find_preferences(user_id)
        if prefs is None:
            return None
        changes = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
        updated = prefs.model_copy(update=changes, deep=True)
        self._preferences.rows[prefs.id] = updated
        return _copy(updated)

    # ------------------------------------------------------------------
    # Favourites

    @_synchronized
    def get_favorites(self, user_id: int) -> List[Book]:
        return self._resolve_books(f.book_id for f in self._favorites.for_user(user_id))

    @_synchronized
    def add_favorite(self, user_id: int, book_id: int) -> Favorite:
        existing = self._favorites.find(user_id, book_id)
        if existing is not None:
            return _copy(existing)
        favorite = self._favorites.insert(
            lambda i: Favorite(id=i, user_id=user_id, book_id=book_id, created_at=self._now())
        )
        return _copy(favorite)

    @_synchronized
    def remove_favorite(self, user_id: int, book_id: int) -> bool:
        return self._favorites.remove(user_id, book_id)

    @_synchronized
    def is_favorite(self, user_id: int, book_id: int) -> bool:
        return self._favorites.find(user_id, book_id) is not None

    # ------------------------------------------------------------------
    # Notifications

    @_synchronized
    def get_notifications(self, user_id: int) -> List[Notification]:
        rows = [n for n in self._notifications.values() if n.user_id == user_id]
        rows.sort(key=lambda n: (n.created_at, n.id), reverse=True)
        return [_copy(n) for n in rows]

    @_synchronized
    def create_notification(self, data: NotificationCreate) -> Notification:
        notification = self._notifications.insert(
            lambda i: Notification(
                id=i, is_read=False, created_at=self._now(), **data.model_dump()
            )
        )
        return _copy(notification)

    @_synchronized
    def mark_notification_as_read(self, notification_id: int) -> Optional[Notification]:
        notification = self._notifications.rows.get(notification_id)
        if notification is None:
            return None
        updated = notification.model_copy(update={"is_read": True})
        self._notifications.rows[notification_id] = updated
        return _copy(updated)

    @_synchronized
    def mark_all_notifications_as_read(self, user_id: int) -> bool:
        for n in self._notifications.values():
            if n.user_id == user_id and not n.is_read:
                self._notifications.rows[n.id] = n.model_copy(update={"is_read": True})
        return True

    @_synchronized
    def get_unread_notification_count(self, user_id: int) -> int:
        return sum(1 for n in self._notifications.values() if n.user_id == user_id and not n.is_read)

    # ------------------------------------------------------------------
    # Recently viewed

    @_synchronized
    def get_recently_viewed(self, user_id: int, limit: int = 10) -> List[Book]:
        # Reversed insertion order first, so on equal timestamps the entry
        # touched last wins (sort is stable).
        entries = list(reversed(self._recently_viewed.for_user(user_id)))
        entries.sort(key=lambda e: e.viewed_at, reverse=True)
        return self._resolve_books(e.book_id for e in entries[:max(0, limit)])

    @_synchronized
    def add_recently_viewed(self, user_id: int, book_id: int) -> RecentlyViewed:
        existing = self._recently_viewed.find(user_id, book_id)
        if existing is not None:
            updated = existing.model_copy(update={"viewed_at": self._now()})
            self._recently_viewed.replace(updated)
            return _copy(updated)
        entry = self._recently_viewed.insert(
            lambda i: RecentlyViewed(id=i, user_id=user_id, book_id=book_id, viewed_at=self._now())
        )
        return _copy(entry)

    @_synchronized
    def clear_recently_viewed(self, user_id: int) -> bool:
        for entry in self._recently_viewed.for_user(user_id):
            self._recently_viewed.remove(user_id, entry.book_id)
        return True

    # ------------------------------------------------------------------
    # Authors

    @_synchronized
    def get_authors(self) -> List[Author]:
        return [_copy(a) for a in self._authors.values()]

    @_synchronized
    def get_author(self, author_id: int) -> Optional[Author]:
        return _copy(self._authors.rows.get(author_id))

    @_synchronized
    def get_author_by_name(self, name: str) -> Optional[Author]:
        return _copy(next((a for a in self._authors.values() if a.name == name), None))

    @_synchronized
    def create_author(self, data: AuthorCreate) -> Author:
        author = self._authors.insert(lambda i: Author(id=i, **data.model_dump()))
        return _copy(author)

    # ------------------------------------------------------------------
    # Series

    @_synchronized
    def get_book_series(self) -> List[BookSeries]:
        return [_copy(s) for s in self._series.values()]

    @_synchronized
    def get_book_series_by_id(self, series_id: int) -> Optional[BookSeries]:
        return _copy(self._series.rows.get(series_id))

    @_synchronized
    def get_book_series_by_name(self, name: str) -> Optional[BookSeries]:
        return _copy(next((s for s in self._series.values() if s.name == name), None))

    @_synchronized
    def create_book_series(self, data: BookSeriesCreate) -> BookSeries:
        series = self._series.insert(lambda i: BookSeries(id=i, **data.model_dump()))
        return _copy(series)

    # ------------------------------------------------------------------
    # Following

    @_synchronized
    def get_following_authors(self, user_id: int) -> List[Author]:
        authors = (self._authors.rows.get(f.author_id) for f in self._following_authors.for_user(user_id))
        return [_copy(a) for a in authors if a is not None]

    @_synchronized
    def follow_author(self, user_id: int, author_id: int) -> FollowingAuthor:
        existing = self._following_authors.find(user_id, author_id)
        if existing is not None:
            return _copy(existing)
        follow = self._following_authors.insert(
            lambda i: FollowingAuthor(id=i, user_id=user_id, author_id=author_id, followed_at=self._now())
        )
        return _copy(follow)

    @_synchronized
    def unfollow_author(self, user_id: int, author_id: int) -> bool:
        return self._following_authors.remove(user_id, author_id)

    @_synchronized
    def is_following_author(self, user_id: int, author_id: int) -> bool:
        return self._following_authors.find(user_id, author_id) is not None

    @_synchronized
    def get_following_series(self, user_id: int) -> List[BookSeries]:
        series = (self._series.rows.get(f.series_id) for f in self._following_series.for_user(user_id))
        return [_copy(s) for s in series if s is not None]

    @_synchronized
    def follow_series(self, user_id: int, series_id: int) -> FollowingSeries:
        existing = self._following_series.find(user_id, series_id)
        if existing is not None:
            return _copy(existing)
        follow = self._following_series.insert(
            lambda i: FollowingSeries(id=i, user_id=user_id, series_id=series_id, followed_at=self._now())
        )
        return _copy(follow)

    @_synchronized
    def unfollow_series(self, user_id: int, series_id: int) -> bool:
        return self._following_series.remove(user_id, series_id)

    @_synchronized
    def is_following_series(self, user_id: int, series_id: int) -> bool:
        return self._following_series.find(user_id, series_id) is not None

    @_synchronized
    def get_following_categories(self, user_id: int) -> List[str]:
        return [f.category for f in self._following_categories.for_user(user_id)]

    @_synchronized
    def follow_category(self, user_id: int, category: str) -> FollowingCategory:
        existing = self._following_categories.find(user_id, category)
        if existing is not None:
            return _copy(existing)
        follow = self._following_categories.insert(
            lambda i: FollowingCategory(id=i, user_id=user_id, category=category, followed_at=self._now())
        )
        return _copy(follow)

    @_synchronized
    def unfollow_category(self, user_id: int, category: str) -> bool:
        return self._following_categories.remove(user_id, category)

    @_synchronized
    def is_following_category(self, user_id: int, category: str) -> bool:
        return self._following_categories.find(user_id, category) is not None

    # ------------------------------------------------------------------

    def _resolve_books(self, book_ids) -> List[Book]:
        books = (self._books.rows.get(book_id) for book_id in book_ids)
        return [_copy(b) for b in books if b is not None]
