"""
Pydantic schema definitions for the catalog module.

``BookSearchResult`` is what every external source (Google Books, Open
Library, the bundled sample list) is mapped into. It carries just
enough to render a result card and to be posted straight back to the
library or wishlist endpoints.
"""

from typing import Optional

from pydantic import BaseModel
from typing_extensions import Literal


BookSource = Literal["google", "openlibrary", "local"]


class BookSearchResult(BaseModel):
    """A single book found in an external catalogue.

    At least one of ``olid`` and ``google_id`` is set for remote results;
    they are the keys used to deduplicate books once stored locally.
    ``isbn`` and ``cover_url`` are empty strings when the provider has
    none. ``age_range`` is a guess derived from the title unless the
    source provides one.
    """

    title: str
    author: str
    olid: Optional[str] = None
    google_id: Optional[str] = None
    cover_url: str = ""
    isbn: str = ""
    age_range: Optional[str] = None
    year: Optional[int] = None
    source: BookSource = "openlibrary"
