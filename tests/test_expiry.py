"""Tests for expiry date arithmetic."""

from datetime import UTC, date, datetime, timedelta, timezone

import pytest

from compliance_engine.services.expiry import as_calendar_date, calculate_expiry, days_until_expiry


def test_calculate_expiry_adds_calendar_years() -> None:
    assert calculate_expiry(date(2022, 1, 10), 3) == date(2025, 1, 10)
    assert calculate_expiry(date(2024, 3, 1), 1) == date(2025, 3, 1)


def test_calculate_expiry_clamps_leap_day() -> None:
    assert calculate_expiry(date(2020, 2, 29), 1) == date(2021, 2, 28)
    assert calculate_expiry(date(2020, 2, 29), 4) == date(2024, 2, 29)


def test_calculate_expiry_is_pure() -> None:
    first = calculate_expiry(date(2023, 7, 31), 3)
    second = calculate_expiry(date(2023, 7, 31), 3)
    assert first == second == date(2026, 7, 31)


@pytest.mark.parametrize("years", [0, -1])
def test_calculate_expiry_rejects_non_positive_validity(years: int) -> None:
    with pytest.raises(ValueError, match="validity_years"):
        calculate_expiry(date(2022, 1, 10), years)


def test_calculate_expiry_rejects_out_of_range_year() -> None:
    with pytest.raises(ValueError, match="out of range"):
        calculate_expiry(date(9999, 6, 1), 1)


def test_days_until_expiry_is_signed() -> None:
    expiry = date(2025, 1, 10)
    assert days_until_expiry(expiry, date(2024, 12, 20)) == 21
    assert days_until_expiry(expiry, date(2025, 1, 10)) == 0
    assert days_until_expiry(expiry, date(2025, 1, 11)) == -1


def test_as_calendar_date_uses_utc_for_aware_datetimes() -> None:
    plus_two = timezone(timedelta(hours=2))
    # 01:00 at +02:00 is still the previous day in UTC
    assert as_calendar_date(datetime(2025, 1, 11, 1, 0, tzinfo=plus_two)) == date(2025, 1, 10)
    assert as_calendar_date(datetime(2025, 1, 10, 23, 59, tzinfo=UTC)) == date(2025, 1, 10)


def test_as_calendar_date_keeps_naive_values() -> None:
    assert as_calendar_date(datetime(2025, 1, 10, 23, 59)) == date(2025, 1, 10)
    assert as_calendar_date(date(2025, 1, 10)) == date(2025, 1, 10)
