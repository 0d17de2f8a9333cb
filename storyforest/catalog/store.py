"""
Book lookups with source fallback.

Searches try Google Books first (when enabled), then Open Library, then
the small sample list bundled in ``data/sample_books.json``. The same
sample list seeds demo accounts (see ``storyforest.seed``).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

from ..ages import determine_age_range, recommendation_query
from ..config import get_settings
from ..ranking import rank_by_similarity
from .googlebooks_service import search_books_google, search_isbn_google
from .isbn import is_valid_isbn, normalize_isbn
from .openlibrary_service import get_book_openlibrary, search_books_openlibrary, search_isbn_openlibrary
from .schemas import BookSearchResult


logger = logging.getLogger(__name__)

DATA_FILE = Path(__file__).resolve().parents[1] / "data" / "sample_books.json"


def load_sample_books(path: Path = DATA_FILE) -> List[BookSearchResult]:
    """Load the bundled sample books.

    A missing or malformed file yields an empty list; the error is
    logged.
    """
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
    except (OSError, ValueError) as exc:
        logger.error("Could not load sample books from %s: %s", path, exc)
        return []
    books: List[BookSearchResult] = []
    for entry in raw if isinstance(raw, list) else []:
        title = str(entry.get("title") or "")
        if not title:
            continue
        books.append(
            BookSearchResult(
                olid=entry.get("olid"),
                google_id=entry.get("google_id"),
                title=title,
                author=str(entry.get("author") or "Unknown Author"),
                cover_url=entry.get("cover_url") or "",
                isbn=entry.get("isbn") or "",
                age_range=entry.get("age_range") or determine_age_range(title),
                year=entry.get("year"),
                source="local",
            )
        )
    return books


SAMPLE_BOOKS: List[BookSearchResult] = load_sample_books()


def _norm(s: Optional[str]) -> str:
    return (s or "").strip().lower()


def _search_books_local(q: str, limit: int) -> List[BookSearchResult]:
    nq = _norm(q)
    if not nq:
        return []
    matches = [b for b in SAMPLE_BOOKS if nq in f"{_norm(b.title)} {_norm(b.author)}"]
    return matches[:limit]


def search_books(q: Optional[str], limit: Optional[int] = None) -> List[BookSearchResult]:
    """Search external catalogues for ``q``.

    Google Books is asked first when enabled; Open Library is used when
    Google has nothing, and the bundled sample list when both are empty
    or unreachable.
    """
    query = (q or "").strip()
    if not query:
        return []
    settings = get_settings()
    limit = limit or settings.search_limit

    if settings.google_books_enabled:
        books = search_books_google(query, limit)
        if books:
            return books
        logger.info("Google Books returned nothing for %r, trying Open Library", query)

    books = search_books_openlibrary(query, limit)
    if books:
        return books

    logger.info("No remote results for %r, using sample books", query)
    return _search_books_local(query, limit)


def lookup_isbn(raw_isbn: str) -> Optional[BookSearchResult]:
    """Find the book for a scanned ISBN.

    Raises ``ValueError`` when the value is not a well-formed ISBN-10 or
    ISBN-13. Returns ``None`` when no source knows the book.
    """
    isbn = normalize_isbn(raw_isbn)
    if not is_valid_isbn(isbn):
        raise ValueError(f"Invalid ISBN: {raw_isbn!r}")

    if get_settings().google_books_enabled:
        book = search_isbn_google(isbn)
        if book is not None:
            return book

    book = search_isbn_openlibrary(isbn)
    if book is not None:
        return book

    for sample in SAMPLE_BOOKS:
        if normalize_isbn(sample.isbn) == isbn:
            return sample
    return None


def get_work(olid: str) -> Optional[BookSearchResult]:
    book = get_book_openlibrary(olid)
    if book is not None:
        return book
    for sample in SAMPLE_BOOKS:
        if sample.olid == olid:
            return sample
    return None


def _result_keys(book: BookSearchResult) -> List[str]:
    return [k for k in (book.olid, book.google_id, book.isbn) if k]


def get_recommendations(
    age: int,
    liked_titles: Optional[Sequence[str]] = None,
    exclude: Iterable[str] = (),
    limit: Optional[int] = None,
) -> List[BookSearchResult]:
    """Suggest books for a child of ``age``.

    Candidates come from an age-based Open Library query. Books whose
    olid, Google id or ISBN is in ``exclude`` are dropped and the rest
    is ordered by similarity to ``liked_titles``.
    """
    limit = limit or get_settings().recommendation_limit
    excluded = set(exclude)
    # Over-fetch so exclusions and ranking still leave a full page
    candidates = search_books_openlibrary(recommendation_query(age), limit * 3)
    candidates = [b for b in candidates if not any(k in excluded for k in _result_keys(b))]
    ranked = rank_by_similarity(candidates, [b.title for b in candidates], liked_titles)
    return ranked[:limit]
