# backend/plantdb/apps/maintenance_plans/plan_year.py
"""
Parse a machine's free-text "PM plan year" into the months PM may fall in.

Planners type things like "Monthly", "Feb-May-Aug-Nov", "Jul-Jan" or
"March, September". Months are returned 0-based (January == 0) so they line
up with the yearly grid columns.
"""

from __future__ import annotations

import re
from datetime import date
from functools import lru_cache
from typing import FrozenSet, Optional

ALL_MONTHS: FrozenSet[int] = frozenset(range(12))

_MONTH_INDEX = {
    "JAN": 0, "FEB": 1, "MAR": 2, "APR": 3, "MAY": 4, "JUN": 5,
    "JUL": 6, "AUG": 7, "SEP": 8, "OCT": 9, "NOV": 10, "DEC": 11,
}

# Longest alternatives first so "SEPTEMBER" never matches as "SEP" + "TEMBER".
_MONTH_TOKEN_RE = re.compile(
    r"JANUARY|JAN|FEBRUARY|FEB|MARCH|MAR|APRIL|APR|MAY|JUNE|JUN|JULY|JUL|"
    r"AUGUST|AUG|SEPTEMBER|SEPT|SEP|OCTOBER|OCT|NOVEMBER|NOV|DECEMBER|DEC"
)


def _is_two_part_range(text: str) -> bool:
    parts = text.split("-")
    return len(parts) == 2 and all(p.strip() for p in parts)


def _cyclic_range(start: int, end: int) -> FrozenSet[int]:
    months = set()
    current = start
    while len(months) < 12:
        months.add(current)
        if current == end:
            break
        current = (current + 1) % 12
    return frozenset(months)


@lru_cache(maxsize=512)
def derive_allowed_months(plan_year_text: Optional[str]) -> FrozenSet[int]:
    """
    Return the 0-based months a machine's PM may be scheduled in.

    - blank / None            -> empty set (no restriction asserted)
    - contains "MONTHLY"      -> all twelve months
    - two months joined by one hyphen ("Jul-Jan") -> inclusive cyclic range
    - otherwise               -> each month named
    - nothing recognisable    -> all twelve months
    """
    if plan_year_text is None or not plan_year_text.strip():
        return frozenset()

    upper = plan_year_text.upper()
    if "MONTHLY" in upper:
        return ALL_MONTHS

    indexes = [_MONTH_INDEX[token[:3]] for token in _MONTH_TOKEN_RE.findall(upper)]
    if not indexes:
        return ALL_MONTHS

    if len(indexes) == 2 and _is_two_part_range(upper):
        return _cyclic_range(indexes[0], indexes[1])

    return frozenset(indexes)


def is_month_allowed(plan_year_text: Optional[str], on_date: date) -> bool:
    """An empty month set means the machine has no plan restriction."""
    allowed = derive_allowed_months(plan_year_text)
    return not allowed or (on_date.month - 1) in allowed
