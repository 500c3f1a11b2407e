"""
Route definitions for the catalogue API.

Endpoints under /api:
- GET  /books                : list books with filters and pagination
- GET  /books/search         : local search, topped up from Google Books
- GET  /books/{book_id}      : one book
- GET  /categories           : fixed category list
- GET  /age-ranges           : fixed age range list
- GET/POST /authors, GET /authors/{author_id}
- GET/POST /series,  GET /series/{series_id}
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from .. import config
from ..identity import get_storage
from ..models import (
    AGE_RANGES,
    BOOK_CATEGORIES,
    Author,
    AuthorCreate,
    Book,
    BookFilter,
    BookSeries,
    BookSeriesCreate,
)
from ..storage import Storage
from .store import BookSource, search_books as search_with_source


router = APIRouter(prefix="/api", tags=["catalog"])


def get_book_source(request: Request) -> Optional[BookSource]:
    return getattr(request.app.state, "book_source", None)


@router.get("/books", response_model=List[Book])
def list_books(
    category: Optional[str] = Query(default=None, description="Keep books in this category"),
    age_range: Optional[str] = Query(default=None, alias="ageRange", description="Exact age range"),
    is_new: Optional[bool] = Query(default=None, alias="isNew", description="New releases only"),
    limit: int = Query(default=10, ge=0, description="Maximum number of books"),
    offset: int = Query(default=0, ge=0, description="Books to skip"),
    storage: Storage = Depends(get_storage),
) -> List[Book]:
    options = BookFilter(
        category=category or None,
        age_range=age_range or None,
        is_new=is_new,
        limit=limit,
        offset=offset,
    )
    return storage.get_books(options)


@router.get("/books/search", response_model=List[Book])
def search_books(
    query: str = Query(..., description="Text searched in title, author and description"),
    storage: Storage = Depends(get_storage),
    source: Optional[BookSource] = Depends(get_book_source),
) -> List[Book]:
    if not query.strip():
        raise HTTPException(status_code=400, detail="Search query is required")
    return search_with_source(storage, query, source, config.search_min_local_results())


@router.get("/books/{book_id}", response_model=Book)
def get_book(book_id: int, storage: Storage = Depends(get_storage)) -> Book:
    book = storage.get_book(book_id)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book


@router.get("/categories", response_model=List[str])
def list_categories() -> List[str]:
    return list(BOOK_CATEGORIES)


@router.get("/age-ranges", response_model=List[str])
def list_age_ranges() -> List[str]:
    return list(AGE_RANGES)


# ---------------------------------------------------------------------------
# Authors and series


@router.get("/authors", response_model=List[Author])
def list_authors(storage: Storage = Depends(get_storage)) -> List[Author]:
    return storage.get_authors()


@router.get("/authors/{author_id}", response_model=Author)
def get_author(author_id: int, storage: Storage = Depends(get_storage)) -> Author:
    author = storage.get_author(author_id)
    if author is None:
        raise HTTPException(status_code=404, detail="Author not found")
    return author


@router.post("/authors", response_model=Author, status_code=201)
def create_author(data: AuthorCreate, storage: Storage = Depends(get_storage)) -> Author:
    if storage.get_author_by_name(data.name) is not None:
        raise HTTPException(status_code=400, detail="Author already exists")
    return storage.create_author(data)


@router.get("/series", response_model=List[BookSeries])
def list_series(storage: Storage = Depends(get_storage)) -> List[BookSeries]:
    return storage.get_book_series()


@router.get("/series/{series_id}", response_model=BookSeries)
def get_series(series_id: int, storage: Storage = Depends(get_storage)) -> BookSeries:
    series = storage.get_book_series_by_id(series_id)
    if series is None:
        raise HTTPException(status_code=404, detail="Series not found")
    return series


@router.post("/series", response_model=BookSeries, status_code=201)
def create_series(data: BookSeriesCreate, storage: Storage = Depends(get_storage)) -> BookSeries:
    if storage.get_book_series_by_name(data.name) is not None:
        raise HTTPException(status_code=400, detail="Series already exists")
    return storage.create_book_series(data)
