"""
Open Library integration for the catalogue.

Three lookups are exposed, all anonymous and free:

* ``search_books_openlibrary()``: full-text search, mapped into
  ``BookSearchResult``.
* ``get_book_openlibrary()``: a single work by its Open Library id,
  with the first author's name resolved through the authors endpoint.
* ``search_isbn_openlibrary()``: the first edition matching an ISBN.

Network failures are logged by ``http_get_json`` and surface here as
empty results, so the store can fall back to another source.
"""

from __future__ import annotations

import logging
import re
import urllib.parse
from typing import List, Optional

from ..ages import determine_age_range
from .http import build_url, http_get_json
from .schemas import BookSearchResult


logger = logging.getLogger(__name__)

OPEN_LIBRARY_URL = "https://openlibrary.org"
COVERS_URL = "https://covers.openlibrary.org/b"
SEARCH_FIELDS = "key,title,author_name,cover_i,isbn,first_publish_year"
UNKNOWN_AUTHOR = "Unknown Author"


def _olid_from_key(key: str) -> str:
    """``/works/OL123W`` -> ``OL123W``."""
    return key.strip().strip("/").split("/")[-1]


def _build_cover_url(cover_id: Optional[int], olid: Optional[str]) -> str:
    """Medium cover from the numeric cover id, else from the OLID."""
    if cover_id:
        return f"{COVERS_URL}/id/{cover_id}-M.jpg"
    if olid:
        return f"{COVERS_URL}/olid/{olid}-M.jpg"
    return ""


def _doc_to_result(doc: dict) -> Optional[BookSearchResult]:
    key = doc.get("key")
    if not key or not isinstance(key, str):
        return None
    olid = _olid_from_key(key)
    title = doc.get("title") or ""
    if not title:
        return None
    authors = doc.get("author_name") or []
    isbns = [i for i in doc.get("isbn") or [] if isinstance(i, str)]
    cover_id = doc.get("cover_i")
    year_val = doc.get("first_publish_year")
    return BookSearchResult(
        olid=olid,
        title=title,
        author=authors[0] if authors else UNKNOWN_AUTHOR,
        cover_url=_build_cover_url(cover_id if isinstance(cover_id, int) else None, olid),
        isbn=isbns[0] if isbns else "",
        age_range=determine_age_range(title),
        year=year_val if isinstance(year_val, int) else None,
        source="openlibrary",
    )


def _search(params: dict) -> List[BookSearchResult]:
    data = http_get_json(build_url(f"{OPEN_LIBRARY_URL}/search.json", params))
    if not data or not isinstance(data.get("docs"), list):
        return []
    results: List[BookSearchResult] = []
    for doc in data["docs"]:
        if not isinstance(doc, dict):
            continue
        result = _doc_to_result(doc)
        if result is not None:
            results.append(result)
    return results


def search_books_openlibrary(q: str, limit: int = 10) -> List[BookSearchResult]:
    """Search Open Library for ``q``; blank queries return nothing."""
    if not q or not q.strip():
        return []
    return _search({"q": q.strip(), "limit": max(1, int(limit)), "fields": SEARCH_FIELDS})


def search_isbn_openlibrary(isbn: str) -> Optional[BookSearchResult]:
    """Return the first Open Library result for a normalised ISBN."""
    results = _search({"isbn": isbn, "limit": 1, "fields": SEARCH_FIELDS})
    if not results:
        return None
    # The search may report a different edition's ISBN first
    return results[0].model_copy(update={"isbn": isbn})


def _get_author_name(author_key: str) -> Optional[str]:
    """Resolve an author key to a display name using the Open Library API."""
    key = _olid_from_key(author_key or "")
    if not key:
        return None
    data = http_get_json(f"{OPEN_LIBRARY_URL}/authors/{urllib.parse.quote(key)}.json")
    if data and isinstance(data.get("name"), str):
        return data["name"]
    return None


def get_book_openlibrary(olid: str) -> Optional[BookSearchResult]:
    """Return metadata for a work id, or ``None`` when Open Library has none."""
    if not olid or not olid.strip():
        return None
    work_id = _olid_from_key(olid)
    data = http_get_json(f"{OPEN_LIBRARY_URL}/works/{urllib.parse.quote(work_id)}.json")
    if not data or not data.get("title"):
        return None
    title = data["title"]

    author = UNKNOWN_AUTHOR
    for entry in data.get("authors") or []:
        if isinstance(entry, dict) and isinstance(entry.get("author"), dict):
            name = _get_author_name(entry["author"].get("key") or "")
            if name:
                author = name
            break

    cover_id = None
    covers = data.get("covers") or []
    if covers and isinstance(covers[0], int) and covers[0] > 0:
        cover_id = covers[0]

    year: Optional[int] = None
    published = data.get("first_publish_date")
    if isinstance(published, str):
        m = re.search(r"\d{4}", published)
        if m:
            year = int(m.group())

    return BookSearchResult(
        olid=work_id,
        title=title,
        author=author,
        cover_url=_build_cover_url(cover_id, work_id),
        isbn="",
        age_range=determine_age_range(title),
        year=year,
        source="openlibrary",
    )
