"""
Relational schema for StoryForest.

A parent account (``User``) owns any number of ``Child`` profiles. Books
are stored once and linked to children through two separate join
tables: ``LibraryBook`` for books a child owns (optionally rated
thumbs-up or thumbs-down) and ``WishlistBook`` for books the child
wants. ``Session`` rows back the login cookie.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(80), unique=True, nullable=False)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    children: Mapped[List["Child"]] = relationship(back_populates="user", cascade="all, delete-orphan")


class Child(Base):
    __tablename__ = "children"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    birth_month: Mapped[int] = mapped_column(Integer, nullable=False)
    birth_year: Mapped[int] = mapped_column(Integer, nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    user: Mapped[User] = relationship(back_populates="children")
    library_entries: Mapped[List["LibraryBook"]] = relationship(
        back_populates="child", cascade="all, delete-orphan"
    )
    wishlist_entries: Mapped[List["WishlistBook"]] = relationship(
        back_populates="child", cascade="all, delete-orphan"
    )


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    author: Mapped[str] = mapped_column(Text, nullable=False)
    cover_url: Mapped[Optional[str]] = mapped_column(Text)
    isbn: Mapped[Optional[str]] = mapped_column(String(13), index=True)
    # Open Library identifier (work or edition key)
    olid: Mapped[Optional[str]] = mapped_column(String(32), unique=True)
    google_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True)
    age_range: Mapped[Optional[str]] = mapped_column(String(32))


class LibraryBook(Base):
    __tablename__ = "library_books"
    __table_args__ = (UniqueConstraint("child_id", "book_id", name="uq_library_child_book"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    child_id: Mapped[int] = mapped_column(ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    # 'up', 'down' or NULL
    rating: Mapped[Optional[str]] = mapped_column(String(4))
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    child: Mapped[Child] = relationship(back_populates="library_entries")
    book: Mapped[Book] = relationship()


class WishlistBook(Base):
    __tablename__ = "wishlist_books"
    __table_args__ = (UniqueConstraint("child_id", "book_id", name="uq_wishlist_child_book"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    child_id: Mapped[int] = mapped_column(ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True)
    book_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="CASCADE"), nullable=False)
    added_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    child: Mapped[Child] = relationship(back_populates="wishlist_entries")
    book: Mapped[Book] = relationship()


class Session(Base):
    __tablename__ = "sessions"

    sid: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
