"""Calendar-month arithmetic on ``YYYY-MM`` strings."""

from __future__ import annotations

import calendar
import re
from datetime import date

_MONTH_RE = re.compile(r"^(\d{4})-(\d{2})$")


def parse_month(value: str) -> tuple[int, int]:
    """Return ``(year, month)`` for a ``YYYY-MM`` string. Raises ValueError if malformed."""
    match = _MONTH_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ValueError(f"month must be formatted YYYY-MM, got {value!r}")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {value!r}")
    return year, month


def format_month(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


def month_of(day: date) -> str:
    return format_month(day.year, day.month)


def next_month(value: str) -> str:
    year, month = parse_month(value)
    if month == 12:
        return format_month(year + 1, 1)
    return format_month(year, month + 1)


def month_range(start: str, end: str) -> list[str]:
    """Every month from ``start`` to ``end`` inclusive; empty when start is after end."""
    parse_month(end)
    months: list[str] = []
    current = format_month(*parse_month(start))
    while current <= end:
        months.append(current)
        current = next_month(current)
    return months


def first_day(value: str) -> date:
    year, month = parse_month(value)
    return date(year, month, 1)


def last_day(value: str) -> date:
    year, month = parse_month(value)
    return date(year, month, calendar.monthrange(year, month)[1])


def days_between(start: str, end: str) -> int:
    """Number of days from the first day of ``start`` through the last day of ``end``."""
    return (last_day(end) - first_day(start)).days + 1


def contains(start: str, end: str, month: str) -> bool:
    return start <= month <= end
