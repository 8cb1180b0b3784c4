"""
Calendar window helpers.

All detector date ranges are inclusive `YYYY-MM-DD` day ranges in UTC.
"""

from __future__ import annotations

import re
from datetime import date, timedelta
from typing import Dict

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_day(value: str) -> date:
    """
    Parse a `YYYY-MM-DD` string into a date.

    Raises:
        ValueError: If the string is not in that shape or not a real date
    """
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValueError(f"expected a YYYY-MM-DD date, got {value!r}")
    return date.fromisoformat(value)


def day_count(date_from: str, date_to: str) -> int:
    """Number of days in the inclusive range."""
    return (parse_day(date_to) - parse_day(date_from)).days + 1


def previous_window(date_from: str, date_to: str) -> Dict[str, str]:
    """
    Window of identical length ending the day before `date_from`.

    Example:
        previous_window("2025-08-01", "2025-08-31")
        -> {"from": "2025-07-01", "to": "2025-07-31"}
    """
    days = day_count(date_from, date_to)
    prev_to = parse_day(date_from) - timedelta(days=1)
    prev_from = prev_to - timedelta(days=days - 1)
    return {"from": prev_from.isoformat(), "to": prev_to.isoformat()}
