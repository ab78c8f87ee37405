from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from errors import InvalidPeriodError
from periods import (
    PERIOD_TOKENS,
    resolve_chart_period,
    resolve_period,
)


def test_current_week_runs_sunday_to_saturday() -> None:
    # 2025-01-15 is a Wednesday.
    ref = datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc)

    window = resolve_period("current-week", ref)

    assert window.label == "current-week"
    assert window.start == datetime(2025, 1, 12, 0, 0, tzinfo=timezone.utc)
    assert window.start.weekday() == 6
    assert window.end.date().isoformat() == "2025-01-18"
    assert (window.end.hour, window.end.minute, window.end.second) == (23, 59, 59)


def test_current_week_on_sunday_starts_that_day() -> None:
    ref = datetime(2025, 1, 12, 0, 0, tzinfo=timezone.utc)

    window = resolve_period("current-week", ref)

    assert window.start.date().isoformat() == "2025-01-12"
    assert window.end.date().isoformat() == "2025-01-18"


def test_current_week_on_saturday_crossing_month() -> None:
    ref = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)

    window = resolve_period("current-week", ref)

    assert window.start.date().isoformat() == "2025-02-23"
    assert window.end.date().isoformat() == "2025-03-01"


def test_current_month_bounds_handle_leap_february() -> None:
    ref = datetime(2024, 2, 10, 8, 0, tzinfo=timezone.utc)

    window = resolve_period("current-month", ref)

    assert window.start == datetime(2024, 2, 1, tzinfo=timezone.utc)
    assert window.end.date().isoformat() == "2024-02-29"


def test_current_year_bounds() -> None:
    ref = datetime(2025, 7, 4, tzinfo=timezone.utc)

    window = resolve_period("current-year", ref)

    assert window.start == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert window.end.date().isoformat() == "2025-12-31"


def test_last_month_wraps_into_previous_year() -> None:
    ref = datetime(2025, 1, 20, tzinfo=timezone.utc)

    window = resolve_period("last-month", ref)

    assert window.label == "last-month"
    assert window.start == datetime(2024, 12, 1, tzinfo=timezone.utc)
    assert window.end.date().isoformat() == "2024-12-31"


@pytest.mark.parametrize("token", [None, "", "fortnight", "CURRENT-MONTH"])
def test_unknown_or_missing_token_falls_back_to_current_month(token) -> None:
    ref = datetime(2025, 5, 17, tzinfo=timezone.utc)

    window = resolve_period(token, ref)

    assert window == resolve_period("current-month", ref)
    assert window.label == "current-month"


def test_strict_resolution_rejects_unknown_tokens() -> None:
    ref = datetime(2025, 5, 17, tzinfo=timezone.utc)

    with pytest.raises(InvalidPeriodError, match="fortnight"):
        resolve_period("fortnight", ref, strict=True)

    assert resolve_period(None, ref, strict=True).label == "current-month"


@pytest.mark.parametrize("token", PERIOD_TOKENS)
def test_windows_contain_their_reference_for_every_token(token) -> None:
    tz = ZoneInfo("America/New_York")
    ref = datetime(2025, 11, 2, 23, 45, tzinfo=tz)

    window = resolve_period(token, ref)

    if token != "last-month":
        assert window.contains(ref)
    assert window.end >= window.start
    assert window.end > window.end - timedelta(days=1)
    assert window.start.tzinfo is tz


def test_bounds_follow_reference_time_zone_when_stored() -> None:
    ref = datetime(2025, 6, 15, 12, 0, tzinfo=ZoneInfo("Europe/Berlin"))

    start, end = resolve_period("current-month", ref).storage_bounds()

    assert start == datetime(2025, 5, 31, 22, 0)
    assert end.date().isoformat() == "2025-06-30"
    assert end.hour == 21
    assert start.tzinfo is None


def test_chart_period_falls_back_for_last_month() -> None:
    ref = datetime(2025, 5, 17, tzinfo=timezone.utc)

    assert resolve_chart_period("last-month", ref).label == "current-month"
    assert resolve_chart_period("current-year", ref).label == "current-year"
    assert resolve_chart_period(None, ref).label == "current-month"
