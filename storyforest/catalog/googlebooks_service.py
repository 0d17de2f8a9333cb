"""
Google Books integration for the catalogue.

Searches the public ``volumes`` endpoint (an API key is optional and
only raises the quota) and maps each volume into ``BookSearchResult``.
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional

from ..ages import determine_age_range
from ..config import get_settings
from .http import build_url, http_get_json
from .schemas import BookSearchResult


logger = logging.getLogger(__name__)

GOOGLE_BOOKS_URL = "https://www.googleapis.com/books/v1/volumes"
UNKNOWN_AUTHOR = "Unknown Author"


def _pick_isbn(identifiers: list) -> str:
    """Prefer ISBN-13 over ISBN-10; other identifier types are ignored."""
    found = {}
    for ident in identifiers or []:
        if isinstance(ident, dict) and isinstance(ident.get("identifier"), str):
            found[ident.get("type")] = ident["identifier"]
    return found.get("ISBN_13") or found.get("ISBN_10") or ""


def _cover_url(image_links: Optional[dict]) -> str:
    if not isinstance(image_links, dict):
        return ""
    url = image_links.get("thumbnail") or image_links.get("smallThumbnail") or ""
    # Google still hands out plain http links
    if url.startswith("http://"):
        url = "https://" + url[len("http://"):]
    return url


def _parse_year(published: Optional[str]) -> Optional[int]:
    if not published:
        return None
    m = re.match(r"(\d{4})", published)
    return int(m.group(1)) if m else None


def _volume_to_result(item: dict) -> Optional[BookSearchResult]:
    google_id = item.get("id")
    info = item.get("volumeInfo")
    if not google_id or not isinstance(info, dict) or not info.get("title"):
        return None
    title = info["title"]
    authors = info.get("authors") or []
    return BookSearchResult(
        google_id=google_id,
        title=title,
        author=authors[0] if authors else UNKNOWN_AUTHOR,
        cover_url=_cover_url(info.get("imageLinks")),
        isbn=_pick_isbn(info.get("industryIdentifiers")),
        age_range=determine_age_range(title),
        year=_parse_year(info.get("publishedDate")),
        source="google",
    )


def _search(q: str, limit: int) -> List[BookSearchResult]:
    settings = get_settings()
    params = {
        "q": q,
        "maxResults": max(1, min(int(limit), 40)),
        "printType": "books",
        "key": settings.google_books_api_key,
    }
    data = http_get_json(build_url(GOOGLE_BOOKS_URL, params))
    if not data or not isinstance(data.get("items"), list):
        return []
    results: List[BookSearchResult] = []
    for item in data["items"]:
        if not isinstance(item, dict):
            continue
        result = _volume_to_result(item)
        if result is not None:
            results.append(result)
    return results


def search_books_google(q: str, limit: int = 10) -> List[BookSearchResult]:
    """Search Google Books for ``q``; blank queries return nothing."""
    if not q or not q.strip():
        return []
    return _search(q.strip(), limit)


def search_isbn_google(isbn: str) -> Optional[BookSearchResult]:
    results = _search(f"isbn:{isbn}", 1)
    if not results:
        return None
    result = results[0]
    if not result.isbn:
        result = result.model_copy(update={"isbn": isbn})
    return result
