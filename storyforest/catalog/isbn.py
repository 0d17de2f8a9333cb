"""ISBN normalisation and checksum validation for scanned barcodes."""

from __future__ import annotations

import re
from typing import Optional

ISBN_PATTERN = re.compile(r"^(?:\d{9}[\dX]|\d{13})$")
ISBN_MAX_LENGTH = 13


def normalize_isbn(raw: Optional[str]) -> str:
    """Strip spaces and hyphens and uppercase a trailing ``x``."""
    return re.sub(r"[\s-]+", "", raw or "").upper()


def _isbn10_checksum_ok(value: str) -> bool:
    total = 0
    for position, char in enumerate(value):
        digit = 10 if char == "X" else int(char)
        total += digit * (10 - position)
    return total % 11 == 0


def _isbn13_checksum_ok(value: str) -> bool:
    total = sum(int(c) * (1 if i % 2 == 0 else 3) for i, c in enumerate(value))
    return total % 10 == 0


def is_valid_isbn(value: str) -> bool:
    """True for a normalised ISBN-10 or ISBN-13 with a correct check digit."""
    if not ISBN_PATTERN.match(value or ""):
        return False
    if len(value) == 10:
        return _isbn10_checksum_ok(value)
    return _isbn13_checksum_ok(value)
