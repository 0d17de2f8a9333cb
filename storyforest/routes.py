"""
Route definitions for children, their libraries and wishlists, and
discovery of other families' public libraries.

Every endpoint requires a logged-in user. A child's profile, library
and wishlist can be read by its parent, or by anyone when the parent's
account is public. Only the parent may change them.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from . import storage
from .ages import calculate_age
from .auth import get_current_user
from .catalog.schemas import BookSearchResult
from .catalog.store import get_recommendations
from .database import get_db
from .models import (
    AddBookResponse,
    BookCreate,
    BookWithDetails,
    ChildCreate,
    ChildWithStats,
    LibraryAddRequest,
    PublicUser,
    RatingRequest,
    SuccessResponse,
)
from .tables import Child, User


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["children"])


def _get_child_or_404(db: Session, child_id: int) -> Child:
    child = storage.get_child(db, child_id)
    if child is None:
        raise HTTPException(status_code=404, detail="Child not found")
    return child


def get_viewable_child(db: Session, child_id: int, user: User) -> Child:
    child = _get_child_or_404(db, child_id)
    if child.user_id != user.id:
        owner = storage.get_user(db, child.user_id)
        if owner is None or not owner.is_public:
            raise HTTPException(status_code=403, detail="Access denied")
    return child


def get_owned_child(db: Session, child_id: int, user: User) -> Child:
    child = _get_child_or_404(db, child_id)
    if child.user_id != user.id:
        raise HTTPException(status_code=403, detail="Access denied")
    return child


def _store_book(db: Session, req: BookCreate):
    try:
        return storage.find_or_create_book(db, req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ---------------------------------------------------------------------------
# Children

@router.get("/children", response_model=List[ChildWithStats])
def list_children(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [storage.get_child_with_stats(db, c) for c in storage.get_children_by_user_id(db, user.id)]


@router.post("/children", response_model=ChildWithStats, status_code=status.HTTP_201_CREATED)
def create_child(
    req: ChildCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        child = storage.create_child(db, user.id, req)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info("User %s added child %s", user.id, child.id)
    return storage.get_child_with_stats(db, child)


@router.get("/children/{child_id}", response_model=ChildWithStats)
def get_child(child_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    child = get_viewable_child(db, child_id, user)
    return storage.get_child_with_stats(db, child)


@router.delete("/children/{child_id}", response_model=SuccessResponse)
def delete_child(child_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    child = get_owned_child(db, child_id, user)
    storage.delete_child(db, child)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Library

@router.get("/children/{child_id}/library", response_model=List[BookWithDetails])
def get_library(child_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    get_viewable_child(db, child_id, user)
    return storage.get_library_books(db, child_id)


@router.post(
    "/children/{child_id}/library",
    response_model=AddBookResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_to_library(
    child_id: int,
    req: LibraryAddRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_owned_child(db, child_id, user)
    book = _store_book(db, req)
    storage.add_book_to_library(db, child_id, book.id, req.rating)
    return AddBookResponse(book_id=book.id)


@router.delete("/children/{child_id}/library/{book_id}", response_model=SuccessResponse)
def remove_from_library(
    child_id: int,
    book_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_owned_child(db, child_id, user)
    storage.remove_book_from_library(db, child_id, book_id)
    return SuccessResponse()


@router.post("/children/{child_id}/library/{book_id}/rate", response_model=SuccessResponse)
def rate_book(
    child_id: int,
    book_id: int,
    req: RatingRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_owned_child(db, child_id, user)
    if not storage.update_book_rating(db, child_id, book_id, req.rating):
        raise HTTPException(status_code=404, detail="Book is not in this library")
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Wishlist

@router.get("/children/{child_id}/wishlist", response_model=List[BookWithDetails])
def get_wishlist(child_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    get_viewable_child(db, child_id, user)
    return storage.get_wishlist_books(db, child_id)


@router.post(
    "/children/{child_id}/wishlist",
    response_model=AddBookResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_to_wishlist(
    child_id: int,
    req: BookCreate,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_owned_child(db, child_id, user)
    book = _store_book(db, req)
    storage.add_book_to_wishlist(db, child_id, book.id)
    return AddBookResponse(book_id=book.id)


@router.delete("/children/{child_id}/wishlist/{book_id}", response_model=SuccessResponse)
def remove_from_wishlist(
    child_id: int,
    book_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    get_owned_child(db, child_id, user)
    storage.remove_book_from_wishlist(db, child_id, book_id)
    return SuccessResponse()


# ---------------------------------------------------------------------------
# Recommendations

@router.get("/children/{child_id}/recommendations", response_model=List[BookSearchResult])
def recommendations(
    child_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    child = get_viewable_child(db, child_id, user)
    return get_recommendations(
        calculate_age(child.birth_month, child.birth_year),
        liked_titles=storage.get_liked_titles(db, child_id),
        exclude=storage.get_known_book_keys(db, child_id),
    )


# ---------------------------------------------------------------------------
# Discovery

@router.get("/discover/children", response_model=List[ChildWithStats])
def discover_children(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return storage.get_public_children(db)


@router.get("/users/search", response_model=List[PublicUser])
def search_users(
    q: Optional[str] = Query(default=None, description="Username or name"),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return storage.search_public_users(db, q)


@router.get("/users/{user_id}/children", response_model=List[ChildWithStats])
def public_children_of_user(
    user_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return storage.get_public_children_by_user_id(db, user_id)
