"""
Request and response bodies of the account endpoints.

Request bodies may carry a ``userId``; it is accepted for
compatibility with existing clients and ignored, since every request
acts as the current user.
"""

from typing import Optional

from pydantic import Field

from ..models import ApiModel


class BookRef(ApiModel):
    book_id: int
    user_id: Optional[int] = None


class AuthorRef(ApiModel):
    author_id: int
    user_id: Optional[int] = None


class SeriesRef(ApiModel):
    series_id: int
    user_id: Optional[int] = None


class CategoryRef(ApiModel):
    category: str = Field(min_length=1)
    user_id: Optional[int] = None


class NotificationRequest(ApiModel):
    title: str = Field(min_length=1)
    message: str = Field(min_length=1)
    type: str = Field(min_length=1)
    book_id: Optional[int] = None
    user_id: Optional[int] = None


class FavoriteCheck(ApiModel):
    is_favorite: bool


class FollowingCheck(ApiModel):
    is_following: bool


class UnreadCount(ApiModel):
    count: int


class Success(ApiModel):
    success: bool = True


class Message(ApiModel):
    message: str
