"""
Routes acting on the current user: profile, preferences, favourites,
recently viewed books and notifications.
"""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query

from ..identity import get_current_user, get_storage
from ..models import (
    Book,
    Favorite,
    Notification,
    NotificationCreate,
    RecentlyViewed,
    User,
    UserPreferences,
    UserPreferencesUpdate,
    UserPublic,
)
from ..storage import Storage
from .schemas import BookRef, FavoriteCheck, Message, NotificationRequest, Success, UnreadCount


router = APIRouter(prefix="/api", tags=["account"])


def _require_book(storage: Storage, book_id: int) -> Book:
    book = storage.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.get("/user", response_model=UserPublic)
def current_user(user: User = Depends(get_current_user)) -> UserPublic:
    return UserPublic(id=user.id, username=user.username)


# ---------------------------------------------------------------------------
# Preferences


@router.get("/preferences", response_model=UserPreferences)
def get_preferences(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> UserPreferences:
    prefs = storage.get_user_preferences(user.id)
    if prefs is None:
        raise HTTPException(status_code=404, detail="Preferences not found")
    return prefs


@router.put("/preferences", response_model=UserPreferences)
def update_preferences(
    data: UserPreferencesUpdate,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> UserPreferences:
    prefs = storage.update_user_preferences(user.id, data)
    if prefs is None:
        raise HTTPException(status_code=404, detail="Preferences not found")
    return prefs


# ---------------------------------------------------------------------------
# Favourites


@router.get("/favorites", response_model=List[Book])
def list_favorites(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[Book]:
    return storage.get_favorites(user.id)


@router.post("/favorites", response_model=Favorite, status_code=201)
def add_favorite(
    data: BookRef,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Favorite:
    _require_book(storage, data.book_id)
    if storage.is_favorite(user.id, data.book_id):
        raise HTTPException(status_code=400, detail="Book is already a favorite")
    return storage.add_favorite(user.id, data.book_id)


@router.delete("/favorites/{book_id}", response_model=Message)
def remove_favorite(
    book_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Message:
    if not storage.remove_favorite(user.id, book_id):
        raise HTTPException(status_code=404, detail="Favorite not found")
    return Message(message="Favorite removed successfully")


@router.get("/favorites/check/{book_id}", response_model=FavoriteCheck)
def check_favorite(
    book_id: int,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> FavoriteCheck:
    return FavoriteCheck(is_favorite=storage.is_favorite(user.id, book_id))


# ---------------------------------------------------------------------------
# Recently viewed


@router.get("/recently-viewed", response_model=List[Book])
def list_recently_viewed(
    limit: int = Query(default=10, ge=0),
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[Book]:
    return storage.get_recently_viewed(user.id, limit)


@router.post("/recently-viewed", response_model=RecentlyViewed, status_code=201)
def add_recently_viewed(
    data: BookRef,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> RecentlyViewed:
    _require_book(storage, data.book_id)
    return storage.add_recently_viewed(user.id, data.book_id)


@router.post("/recently-viewed/clear", response_model=Success)
def clear_recently_viewed(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Success:
    return Success(success=storage.clear_recently_viewed(user.id))


# ---------------------------------------------------------------------------
# Notifications


@router.get("/notifications", response_model=List[Notification])
def list_notifications(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> List[Notification]:
    return storage.get_notifications(user.id)


@router.get("/notifications/unread-count", response_model=UnreadCount)
def unread_count(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> UnreadCount:
    return UnreadCount(count=storage.get_unread_notification_count(user.id))


@router.post("/notifications", response_model=Notification, status_code=201)
def create_notification(
    data: NotificationRequest,
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Notification:
    if data.book_id is not None:
        _require_book(storage, data.book_id)
    return storage.create_notification(
        NotificationCreate(
            user_id=user.id,
            title=data.title,
            message=data.message,
            type=data.type,
            book_id=data.book_id,
        )
    )


@router.post("/notifications/mark-read/{notification_id}", response_model=Notification)
def mark_read(notification_id: int, storage: Storage = Depends(get_storage)) -> Notification:
    notification = storage.mark_notification_as_read(notification_id)
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.post("/notifications/mark-all-read", response_model=Success)
def mark_all_read(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
) -> Success:
    return Success(success=storage.mark_all_notifications_as_read(user.id))
