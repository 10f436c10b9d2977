"""
Dutch date grammars used on diploma extracts.

    full date   "3 maart 1990"    -> "03-03-1990"   (month name lowercase)
    month only  "Augustus 2016"   -> "01-08-2016"   (case-insensitive)

Unparseable input yields "" and never raises.
"""

from __future__ import annotations

from typing import Optional

DUTCH_MONTHS = {
    "januari": 1,
    "februari": 2,
    "maart": 3,
    "april": 4,
    "mei": 5,
    "juni": 6,
    "juli": 7,
    "augustus": 8,
    "september": 9,
    "oktober": 10,
    "november": 11,
    "december": 12,
}


def _positive_int(part: str) -> Optional[int]:
    if not (part.isascii() and part.isdigit()):
        return None
    value = int(part)
    return value or None


def parse_dutch_date(value: str) -> str:
    parts = value.split()
    if len(parts) != 3:
        return ""

    day = _positive_int(parts[0])
    month = DUTCH_MONTHS.get(parts[1])
    year = _positive_int(parts[2])
    if day is None or month is None or year is None:
        return ""
    return f"{day:02d}-{month:02d}-{year:04d}"


def parse_dutch_month(value: str) -> str:
    """Parse "<Month> <year>", picking the first day of the month."""
    parts = value.split()
    if len(parts) != 2:
        return ""

    month = DUTCH_MONTHS.get(parts[0].lower())
    year = _positive_int(parts[1])
    if month is None or year is None:
        return ""
    return f"01-{month:02d}-{year:04d}"


def parse_dutch_date_or_month(value: str) -> str:
    return parse_dutch_date(value) or parse_dutch_month(value)
