"""
Route definitions for the catalogue API.

Endpoints:
- GET /api/books/search          : search Google Books / Open Library
- GET /api/public/books/search   : same search, no login required
- GET /api/books/isbn/{isbn}     : resolve a scanned ISBN
- GET /api/books/works/{olid}    : one Open Library work
"""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..auth import get_current_user
from ..tables import User
from .schemas import BookSearchResult
from .store import get_work, lookup_isbn, search_books


router = APIRouter(prefix="/api", tags=["catalog"])

# Anonymous visitors get a shorter result list
PUBLIC_SEARCH_LIMIT = 6


@router.get("/books/search", response_model=List[BookSearchResult])
def search(
    q: Optional[str] = Query(default=None, description="Title, author or keywords"),
    user: User = Depends(get_current_user),
) -> List[BookSearchResult]:
    return search_books(q)


@router.get("/public/books/search", response_model=List[BookSearchResult])
def public_search(
    q: Optional[str] = Query(default=None, description="Title, author or keywords"),
) -> List[BookSearchResult]:
    return search_books(q, limit=PUBLIC_SEARCH_LIMIT)


@router.get("/books/isbn/{isbn}", response_model=BookSearchResult)
def get_by_isbn(isbn: str, user: User = Depends(get_current_user)) -> BookSearchResult:
    try:
        book = lookup_isbn(isbn)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if book is None:
        raise HTTPException(status_code=404, detail="No book found for this ISBN")
    return book


@router.get("/books/works/{olid}", response_model=BookSearchResult)
def get_book(olid: str, user: User = Depends(get_current_user)) -> BookSearchResult:
    book = get_work(olid)
    if book is None:
        raise HTTPException(status_code=404, detail="Book not found")
    return book
