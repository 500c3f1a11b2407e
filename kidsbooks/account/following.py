"""
Routes for following authors, series and categories.

Following is idempotent: posting an existing follow returns the
existing row. Unfollowing something not followed is a 404.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException

from ..identity import get_current_user, get_storage
from ..models import (
    BOOK_CATEGORIES,
    Author,
    BookSeries,
    FollowingAuthor,
    FollowingCategory,
    FollowingSeries,
    User,
)
from ..storage import Storage
from .schemas import AuthorRef, CategoryRef, FollowingCheck, Message, SeriesRef


router = APIRouter(prefix="/api/following", tags=["following"])


# ---------------------------------------------------------------------------
# Authors


@router.get("/authors", response_model=List[Author])
def following_authors(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[Author]:
    return storage.get_following_authors(user.id)


@router.post("/authors", response_model=FollowingAuthor, status_code=201)
def follow_author(
    data: AuthorRef,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingAuthor:
    if storage.get_author(data.author_id) is None:
        raise HTTPException(status_code=404, detail="Author not found")
    return storage.follow_author(user.id, data.author_id)


@router.delete("/authors/{author_id}", response_model=Message)
def unfollow_author(
    author_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Message:
    if not storage.unfollow_author(user.id, author_id):
        raise HTTPException(status_code=404, detail="Not following this author")
    return Message(message="Author unfollowed successfully")


@router.get("/authors/check/{author_id}", response_model=FollowingCheck)
def check_author(
    author_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingCheck:
    return FollowingCheck(is_following=storage.is_following_author(user.id, author_id))


# ---------------------------------------------------------------------------
# Series


@router.get("/series", response_model=List[BookSeries])
def following_series(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[BookSeries]:
    return storage.get_following_series(user.id)


@router.post("/series", response_model=FollowingSeries, status_code=201)
def follow_series(
    data: SeriesRef,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingSeries:
    if storage.get_book_series_by_id(data.series_id) is None:
        raise HTTPException(status_code=404, detail="Series not found")
    return storage.follow_series(user.id, data.series_id)


@router.delete("/series/{series_id}", response_model=Message)
def unfollow_series(
    series_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Message:
    if not storage.unfollow_series(user.id, series_id):
        raise HTTPException(status_code=404, detail="Not following this series")
    return Message(message="Series unfollowed successfully")


@router.get("/series/check/{series_id}", response_model=FollowingCheck)
def check_series(
    series_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingCheck:
    return FollowingCheck(is_following=storage.is_following_series(user.id, series_id))


# ---------------------------------------------------------------------------
# Categories


@router.get("/categories", response_model=List[str])
def following_categories(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[str]:
    return storage.get_following_categories(user.id)


@router.post("/categories", response_model=FollowingCategory, status_code=201)
def follow_category(
    data: CategoryRef,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingCategory:
    if data.category not in BOOK_CATEGORIES:
        raise HTTPException(status_code=400, detail="Invalid category")
    return storage.follow_category(user.id, data.category)


# Category names contain spaces; clients send them URL-encoded and
# Starlette decodes the path before matching.
@router.delete("/categories/{category}", response_model=Message)
def unfollow_category(
    category: str,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Message:
    if not storage.unfollow_category(user.id, category):
        raise HTTPException(status_code=404, detail="Not following this category")
    return Message(message="Category unfollowed successfully")


@router.get("/categories/check/{category}", response_model=FollowingCheck)
def check_category(
    category: str,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FollowingCheck:
    return FollowingCheck(is_following=storage.is_following_category(user.id, category))
