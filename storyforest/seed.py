"""
Seed a demo account with sample children, books, libraries and wishlists.

Usage:
    python -m storyforest.seed --username demo --password demo-pass

Running it again resets the account's children to the sample set.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .auth import hash_password
from .catalog.store import load_sample_books
from .database import SessionLocal, get_engine, init_db
from .tables import Book, Child, LibraryBook, User, WishlistBook


logger = logging.getLogger(__name__)

SAMPLE_CHILDREN = (
    {"name": "Hazel", "birth_month": 5, "birth_year": 2016},
    {"name": "Theo", "birth_month": 11, "birth_year": 2019},
)

# (child name, olid, rating)
SAMPLE_LIBRARY = (
    ("Hazel", "OL26331957M", "up"),
    ("Hazel", "OL27327132M", None),
    ("Theo", "OL26331958M", None),
)

SAMPLE_WISHLIST = (
    ("Hazel", "OL25749373M"),
    ("Theo", "OL26331957M"),
)


def _upsert_books(db: Session) -> Dict[str, Book]:
    books: Dict[str, Book] = {}
    for sample in load_sample_books():
        if not sample.olid:
            continue
        values = {
            "title": sample.title,
            "author": sample.author,
            "cover_url": sample.cover_url or None,
            "isbn": sample.isbn or None,
            "age_range": sample.age_range,
        }
        book = db.scalar(select(Book).where(Book.olid == sample.olid))
        if book is None:
            book = Book(olid=sample.olid, **values)
            db.add(book)
        else:
            for key, value in values.items():
                setattr(book, key, value)
        books[sample.olid] = book
    db.flush()
    return books


def seed(db: Session, username: str, password: str, name: Optional[str] = None) -> User:
    """Populate ``username``'s account with the sample data in one transaction."""
    with db.begin():
        user = db.scalar(select(User).where(User.username == username))
        if user is None:
            user = User(
                username=username,
                password=hash_password(password),
                email=f"{username}@example.com",
                name=name or username.title(),
            )
            db.add(user)
        user.is_public = True
        db.flush()

        for child in list(db.scalars(select(Child).where(Child.user_id == user.id))):
            db.delete(child)
        db.flush()

        children = {}
        for data in SAMPLE_CHILDREN:
            child = Child(user_id=user.id, **data)
            db.add(child)
            children[data["name"]] = child
        db.flush()

        books = _upsert_books(db)
        missing = {olid for _, olid, _ in SAMPLE_LIBRARY} | {olid for _, olid in SAMPLE_WISHLIST}
        missing -= set(books)
        if missing:
            raise RuntimeError(f"Sample books missing from data file: {sorted(missing)}")

        for child_name, olid, rating in SAMPLE_LIBRARY:
            db.add(LibraryBook(child_id=children[child_name].id, book_id=books[olid].id, rating=rating))
        for child_name, olid in SAMPLE_WISHLIST:
            db.add(WishlistBook(child_id=children[child_name].id, book_id=books[olid].id))
    logger.info("Seeded sample data for %s", username)
    return user


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Seed StoryForest sample data")
    parser.add_argument("--username", required=True, help="Account to create or reset")
    parser.add_argument("--password", default="storyforest", help="Password for a newly created account")
    parser.add_argument("--name", default=None, help="Display name for a newly created account")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    init_db(get_engine())
    db = SessionLocal()
    try:
        seed(db, args.username, args.password, args.name)
    except Exception as exc:
        logger.error("Failed to seed sample data: %s", exc)
        return 1
    finally:
        db.close()
    print(f"Sample data seeded for {args.username}.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
