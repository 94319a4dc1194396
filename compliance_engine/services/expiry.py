"""Expiry date arithmetic for auto-expiring document types."""

from __future__ import annotations

import calendar
from datetime import UTC, date, datetime


def calculate_expiry(issue_date: date, validity_years: int) -> date:
    """Add validity_years calendar years to issue_date, keeping month and day.

    A day that does not exist in the target year (29 February) is clamped to
    the last day of that month. Raises ValueError for a non-positive validity
    or when the result falls outside the supported date range.
    """
    if validity_years <= 0:
        raise ValueError(f"validity_years must be positive, got {validity_years}")
    year = issue_date.year + validity_years
    if year > date.max.year:
        raise ValueError(f"expiry year {year} is out of range")
    last_day = calendar.monthrange(year, issue_date.month)[1]
    return date(year, issue_date.month, min(issue_date.day, last_day))


def as_calendar_date(now: date | datetime) -> date:
    """Reduce an instant to the calendar day used for expiry comparisons (UTC for aware values)."""
    if isinstance(now, datetime):
        if now.tzinfo is not None:
            now = now.astimezone(UTC)
        return now.date()
    return now


def days_until_expiry(expiry_date: date, now: date | datetime) -> int:
    """Whole days from now until expiry_date; negative once expired."""
    return (expiry_date - as_calendar_date(now)).days
