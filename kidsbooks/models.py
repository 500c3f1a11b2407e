from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


BOOK_CATEGORIES = (
    "Picture Books",
    "Early Readers",
    "Middle Grade",
    "Adventure",
    "Fantasy",
    "Educational",
    "Science Fiction",
    "Mystery",
    "Biography",
    "Fairy Tales",
    "Bedtime Stories",
)

AGE_RANGES = (
    "0-2 years",
    "3-5 years",
    "6-8 years",
    "9-12 years",
)

NEW_RELEASE_TITLE = "New Book Release"
NEW_RELEASE_TYPE = "book_release"


class ApiModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- users -----------------------------------------------------------------


class UserCreate(ApiModel):
    username: str = Field(min_length=1)
    password: str


class User(UserCreate):
    id: int


class UserPublic(ApiModel):
    id: int
    username: str


# --- books -----------------------------------------------------------------


class BookCreate(ApiModel):
    google_id: str = Field(min_length=1)
    title: str
    author: str
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    age_range: Optional[str] = None
    published_date: Optional[str] = None
    # Ratings use a 0-50 integer scale (average rating * 10).
    rating: Optional[int] = Field(default=None, ge=0, le=50)
    is_new: bool = False


class Book(BookCreate):
    id: int


class BookUpdate(ApiModel):
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    thumbnail: Optional[str] = None
    categories: Optional[List[str]] = None
    age_range: Optional[str] = None
    published_date: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=0, le=50)
    is_new: Optional[bool] = None


class BookFilter(ApiModel):
    category: Optional[str] = None
    age_range: Optional[str] = None
    is_new: Optional[bool] = None
    limit: Optional[int] = Field(default=None, ge=0)
    offset: Optional[int] = Field(default=None, ge=0)


# --- preferences -----------------------------------------------------------


def _check_members(values: Optional[List[str]], allowed, label: str) -> Optional[List[str]]:
    if values is None:
        return values
    unknown = [v for v in values if v not in allowed]
    if unknown:
        raise ValueError(f"Unknown {label}: {', '.join(unknown)}")
    return values


class UserPreferencesCreate(ApiModel):
    user_id: int
    preferred_categories: List[str] = Field(default_factory=list)
    preferred_age_ranges: List[str] = Field(default_factory=list)
    notifications_enabled: bool = True


class UserPreferences(UserPreferencesCreate):
    id: int


class UserPreferencesUpdate(ApiModel):
    """Partial preferences update; only the fields sent are merged."""

    preferred_categories: Optional[List[str]] = None
    preferred_age_ranges: Optional[List[str]] = None
    notifications_enabled: Optional[bool] = None

    @field_validator("preferred_categories")
    @classmethod
    def _known_categories(cls, v):
        return _check_members(v, BOOK_CATEGORIES, "categories")

    @field_validator("preferred_age_ranges")
    @classmethod
    def _known_age_ranges(cls, v):
        return _check_members(v, AGE_RANGES, "age ranges")


# --- favorites / recently viewed -------------------------------------------


class Favorite(ApiModel):
    id: int
    user_id: int
    book_id: int
    created_at: datetime


class RecentlyViewed(ApiModel):
    id: int
    user_id: int
    book_id: int
    viewed_at: datetime


# --- notifications ---------------------------------------------------------


class NotificationCreate(ApiModel):
    user_id: int
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = Field(min_length=1)
    book_id: Optional[int] = None


class Notification(NotificationCreate):
    id: int
    is_read: bool = False
    created_at: datetime


# --- authors / series ------------------------------------------------------


class AuthorCreate(ApiModel):
    name: str = Field(min_length=1)
    bio: Optional[str] = None
    photo: Optional[str] = None


class Author(AuthorCreate):
    id: int


class BookSeriesCreate(ApiModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None


class BookSeries(BookSeriesCreate):
    id: int


# --- following -------------------------------------------------------------


class FollowingAuthor(ApiModel):
    id: int
    user_id: int
    author_id: int
    followed_at: datetime


class FollowingSeries(ApiModel):
    id: int
    user_id: int
    series_id: int
    followed_at: datetime


class FollowingCategory(ApiModel):
    id: int
    user_id: int
    category: str
    followed_at: datetime
