"""Age helpers for child profiles and book suggestions."""

from __future__ import annotations

from datetime import date
from typing import Optional

# (keywords, age range) checked in order against the lowercased title
AGE_RANGE_KEYWORDS = (
    (("baby", "infant", "goodnight"), "0-2 yrs"),
    (("toddler", "little"), "1-3 yrs"),
    (("preschool", "abc", "alphabet"), "2-4 yrs"),
)
DEFAULT_AGE_RANGE = "0-3 yrs"


def calculate_age(birth_month: int, birth_year: int, today: Optional[date] = None) -> int:
    """Return a child's age in whole years from a birth month and year.

    Only the month is known, so the birthday counts as reached from the
    first day of the birth month onwards. The result is never negative.
    """
    today = today or date.today()
    age = today.year - birth_year
    if today.month < birth_month:
        age -= 1
    return max(0, age)


def determine_age_range(title: str) -> str:
    """Guess a reader age range from words in a book title."""
    lower_title = (title or "").lower()
    for keywords, age_range in AGE_RANGE_KEYWORDS:
        if any(k in lower_title for k in keywords):
            return age_range
    return DEFAULT_AGE_RANGE


def recommendation_query(age: int) -> str:
    if age <= 1:
        return "baby books"
    if age <= 3:
        return "toddler books"
    return "children books"
