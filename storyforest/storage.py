# storyforest/storage.py
"""
CRUD helpers over the relational schema.

Every function takes the SQLAlchemy session as its first argument and
commits its own writes. Domain validation problems raise ``ValueError``;
the routes translate those into 400 responses.
"""

import logging
from datetime import date
from typing import Dict, List, Optional, Set

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .ages import calculate_age, determine_age_range
from .catalog.isbn import ISBN_MAX_LENGTH, normalize_isbn
from .models import BookCreate, BookWithDetails, ChildCreate, ChildWithStats, UserCreate
from .tables import Book, Child, LibraryBook, User, WishlistBook


logger = logging.getLogger(__name__)


def _like_pattern(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# --- Users -----------------------------------------------------------------

def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.get(User, user_id)


def get_user_by_username(db: Session, username: str) -> Optional[User]:
    return db.scalar(select(User).where(User.username == username))


def create_user(db: Session, req: UserCreate, password_hash: str) -> User:
    username = req.username.strip()
    if not username:
        raise ValueError("Username is required.")
    user = User(
        username=username,
        password=password_hash,
        email=req.email.strip(),
        name=req.name.strip(),
        is_public=req.is_public,
    )
    db.add(user)
    db.commit()
    logger.info("Created user %s (id=%s)", user.username, user.id)
    return user


def set_user_privacy(db: Session, user: User, is_public: bool) -> User:
    user.is_public = is_public
    db.commit()
    return user


def search_public_users(db: Session, query: Optional[str]) -> List[User]:
    """Public accounts whose username or display name contains ``query``."""
    q = (query or "").strip()
    if not q:
        return []
    pattern = _like_pattern(q)
    stmt = (
        select(User)
        .where(User.is_public.is_(True))
        .where(or_(User.username.ilike(pattern, escape="\\"), User.name.ilike(pattern, escape="\\")))
        .order_by(User.username)
    )
    return list(db.scalars(stmt))


# --- Children --------------------------------------------------------------

def get_child(db: Session, child_id: int) -> Optional[Child]:
    return db.get(Child, child_id)


def get_children_by_user_id(db: Session, user_id: int) -> List[Child]:
    return list(db.scalars(select(Child).where(Child.user_id == user_id).order_by(Child.id)))


def create_child(db: Session, user_id: int, req: ChildCreate, today: Optional[date] = None) -> Child:
    today = today or date.today()
    name = req.name.strip()
    if not name:
        raise ValueError("Child name is required.")
    if (req.birth_year, req.birth_month) > (today.year, today.month):
        raise ValueError("Birth month cannot be in the future.")
    child = Child(name=name, birth_month=req.birth_month, birth_year=req.birth_year, user_id=user_id)
    db.add(child)
    db.commit()
    return child


def delete_child(db: Session, child: Child) -> None:
    db.delete(child)
    db.commit()


def get_child_with_stats(db: Session, child: Child, owner_name: Optional[str] = None) -> ChildWithStats:
    library_count = db.scalar(
        select(func.count()).select_from(LibraryBook).where(LibraryBook.child_id == child.id)
    )
    wishlist_count = db.scalar(
        select(func.count()).select_from(WishlistBook).where(WishlistBook.child_id == child.id)
    )
    return ChildWithStats(
        id=child.id,
        name=child.name,
        birth_month=child.birth_month,
        birth_year=child.birth_year,
        user_id=child.user_id,
        age=calculate_age(child.birth_month, child.birth_year),
        library_count=library_count or 0,
        wishlist_count=wishlist_count or 0,
        owner_name=owner_name,
    )


# --- Books -----------------------------------------------------------------

def get_book(db: Session, book_id: int) -> Optional[Book]:
    return db.get(Book, book_id)


def get_book_by_olid(db: Session, olid: str) -> Optional[Book]:
    return db.scalar(select(Book).where(Book.olid == olid))


def get_book_by_google_id(db: Session, google_id: str) -> Optional[Book]:
    return db.scalar(select(Book).where(Book.google_id == google_id))


def get_book_by_isbn(db: Session, isbn: str) -> Optional[Book]:
    return db.scalar(select(Book).where(Book.isbn == isbn).order_by(Book.id).limit(1))


def _match_book(db: Session, data: BookCreate, isbn: Optional[str]) -> Optional[Book]:
    book = None
    if data.olid:
        book = get_book_by_olid(db, data.olid)
    if book is None and data.google_id:
        book = get_book_by_google_id(db, data.google_id)
    if book is None and isbn:
        book = get_book_by_isbn(db, isbn)
    return book


def find_or_create_book(db: Session, data: BookCreate) -> Book:
    """Return the local record for an external book, creating it if needed.

    Books are matched on Open Library id first, then Google Books id,
    then ISBN. A matched record only has its empty fields filled in.
    """
    isbn = normalize_isbn(data.isbn) if data.isbn else None
    if isbn and len(isbn) > ISBN_MAX_LENGTH:
        raise ValueError("ISBN is too long.")
    book = _match_book(db, data, isbn)

    if book is not None:
        if not book.cover_url and data.cover_url:
            book.cover_url = data.cover_url
        if not book.isbn and isbn:
            book.isbn = isbn
        if not book.age_range and data.age_range:
            book.age_range = data.age_range
        db.commit()
        return book

    book = Book(
        title=data.title.strip(),
        author=data.author.strip(),
        cover_url=data.cover_url or None,
        isbn=isbn or None,
        olid=data.olid or None,
        google_id=data.google_id or None,
        age_range=data.age_range or determine_age_range(data.title),
    )
    db.add(book)
    try:
        db.commit()
    except IntegrityError:
        # Created concurrently under the same olid or google_id
        db.rollback()
        existing = _match_book(db, data, isbn)
        if existing is None:
            raise
        return existing
    logger.info("Created book %r (id=%s)", book.title, book.id)
    return book


def _book_details(book: Book, in_library: bool, in_wishlist: bool, rating: Optional[str]) -> BookWithDetails:
    return BookWithDetails(
        id=book.id,
        title=book.title,
        author=book.author,
        cover_url=book.cover_url,
        isbn=book.isbn,
        olid=book.olid,
        google_id=book.google_id,
        age_range=book.age_range,
        in_library=in_library,
        in_wishlist=in_wishlist,
        rating=rating,
    )


# --- Library ---------------------------------------------------------------

def _library_row(db: Session, child_id: int, book_id: int) -> Optional[LibraryBook]:
    return db.scalar(
        select(LibraryBook).where(LibraryBook.child_id == child_id, LibraryBook.book_id == book_id)
    )


def _library_ratings(db: Session, child_id: int) -> Dict[int, Optional[str]]:
    rows = db.execute(
        select(LibraryBook.book_id, LibraryBook.rating).where(LibraryBook.child_id == child_id)
    )
    return {book_id: rating for book_id, rating in rows}


def add_book_to_library(
    db: Session, child_id: int, book_id: int, rating: Optional[str] = None
) -> LibraryBook:
    row = _library_row(db, child_id, book_id)
    if row is None:
        row = LibraryBook(child_id=child_id, book_id=book_id, rating=rating)
        db.add(row)
        try:
            db.commit()
            return row
        except IntegrityError:
            # Another request added the same book first
            db.rollback()
            row = _library_row(db, child_id, book_id)
            if row is None:
                raise
    if rating is not None:
        row.rating = rating
        db.commit()
    return row


def remove_book_from_library(db: Session, child_id: int, book_id: int) -> bool:
    row = _library_row(db, child_id, book_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True


def update_book_rating(db: Session, child_id: int, book_id: int, rating: Optional[str]) -> bool:
    row = _library_row(db, child_id, book_id)
    if row is None:
        return False
    row.rating = rating
    db.commit()
    return True


def get_library_books(db: Session, child_id: int) -> List[BookWithDetails]:
    rows = db.execute(
        select(LibraryBook, Book)
        .join(Book, LibraryBook.book_id == Book.id)
        .where(LibraryBook.child_id == child_id)
        .order_by(LibraryBook.added_at.desc(), LibraryBook.id.desc())
    ).all()
    wishlist_ids = _wishlist_book_ids(db, child_id)
    return [
        _book_details(book, in_library=True, in_wishlist=book.id in wishlist_ids, rating=entry.rating)
        for entry, book in rows
    ]


# --- Wishlist --------------------------------------------------------------

def _wishlist_row(db: Session, child_id: int, book_id: int) -> Optional[WishlistBook]:
    return db.scalar(
        select(WishlistBook).where(WishlistBook.child_id == child_id, WishlistBook.book_id == book_id)
    )


def _wishlist_book_ids(db: Session, child_id: int) -> Set[int]:
    return set(db.scalars(select(WishlistBook.book_id).where(WishlistBook.child_id == child_id)))


def add_book_to_wishlist(db: Session, child_id: int, book_id: int) -> WishlistBook:
    row = _wishlist_row(db, child_id, book_id)
    if row is None:
        row = WishlistBook(child_id=child_id, book_id=book_id)
        db.add(row)
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            row = _wishlist_row(db, child_id, book_id)
            if row is None:
                raise
    return row


def remove_book_from_wishlist(db: Session, child_id: int, book_id: int) -> bool:
    row = _wishlist_row(db, child_id, book_id)
    if row is None:
        return False
    db.delete(row)
    db.commit()
    return True


def get_wishlist_books(db: Session, child_id: int) -> List[BookWithDetails]:
    rows = db.execute(
        select(WishlistBook, Book)
        .join(Book, WishlistBook.book_id == Book.id)
        .where(WishlistBook.child_id == child_id)
        .order_by(WishlistBook.added_at.desc(), WishlistBook.id.desc())
    ).all()
    ratings = _library_ratings(db, child_id)
    return [
        _book_details(
            book,
            in_library=book.id in ratings,
            in_wishlist=True,
            rating=ratings.get(book.id),
        )
        for _, book in rows
    ]


def get_known_book_keys(db: Session, child_id: int) -> Set[str]:
    """Identifiers (olid / google id / isbn) of every book already linked to a child."""
    library = select(LibraryBook.book_id).where(LibraryBook.child_id == child_id)
    wishlist = select(WishlistBook.book_id).where(WishlistBook.child_id == child_id)
    books = db.scalars(select(Book).where(or_(Book.id.in_(library), Book.id.in_(wishlist))))
    keys: Set[str] = set()
    for book in books:
        keys.update(k for k in (book.olid, book.google_id, book.isbn) if k)
    return keys


def get_liked_titles(db: Session, child_id: int) -> List[str]:
    return list(
        db.scalars(
            select(Book.title)
            .join(LibraryBook, LibraryBook.book_id == Book.id)
            .where(LibraryBook.child_id == child_id, LibraryBook.rating == "up")
        )
    )


# --- Discovery -------------------------------------------------------------

def get_public_children(db: Session) -> List[ChildWithStats]:
    rows = db.execute(
        select(Child, User.name)
        .join(User, Child.user_id == User.id)
        .where(User.is_public.is_(True))
        .order_by(Child.id)
    ).all()
    return [get_child_with_stats(db, child, owner_name=owner_name) for child, owner_name in rows]


def get_public_children_by_user_id(db: Session, user_id: int) -> List[ChildWithStats]:
    user = get_user(db, user_id)
    if user is None or not user.is_public:
        return []
    return [
        get_child_with_stats(db, child, owner_name=user.name)
        for child in get_children_by_user_id(db, user_id)
    ]
