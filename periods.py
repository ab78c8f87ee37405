import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

from errors import InvalidPeriodError

logger = logging.getLogger(__name__)

CURRENT_WEEK = "current-week"
CURRENT_MONTH = "current-month"
CURRENT_YEAR = "current-year"
LAST_MONTH = "last-month"

PERIOD_TOKENS = (CURRENT_WEEK, CURRENT_MONTH, CURRENT_YEAR, LAST_MONTH)
CHART_PERIOD_TOKENS = (CURRENT_WEEK, CURRENT_MONTH, CURRENT_YEAR)
DEFAULT_PERIOD = CURRENT_MONTH


@dataclass(frozen=True)
class PeriodWindow:
    label: str
    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start <= instant <= self.end

    def storage_bounds(self) -> tuple[datetime, datetime]:
        """Window bounds as naive UTC, the way expense timestamps are stored."""
        return to_storage(self.start), to_storage(self.end)


def to_storage(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    first = month_start(d)
    if first.month == 12:
        next_month = first.replace(year=first.year + 1, month=1)
    else:
        next_month = first.replace(month=first.month + 1)
    return next_month - date.resolution


def week_start(d: date) -> date:
    # date.weekday() is 0 for Monday; weeks here start on Sunday.
    return d - timedelta(days=(d.weekday() + 1) % 7)


def _window(label: str, first: date, last: date, tz) -> PeriodWindow:
    return PeriodWindow(
        label,
        datetime.combine(first, time.min, tzinfo=tz),
        datetime.combine(last, time.max, tzinfo=tz),
    )


def resolve_period(
    token: Optional[str],
    reference: datetime,
    *,
    strict: bool = False,
) -> PeriodWindow:
    """Map a period token to a closed window around ``reference``.

    Both bounds are computed from the reference's own calendar day and
    time zone. Unknown tokens fall back to the current month unless
    ``strict`` is set, in which case they raise ``InvalidPeriodError``.
    A missing token always means the current month.
    """
    tz = reference.tzinfo
    today = reference.date()

    if token == CURRENT_WEEK:
        first = week_start(today)
        return _window(CURRENT_WEEK, first, first + timedelta(days=6), tz)
    if token == CURRENT_YEAR:
        return _window(
            CURRENT_YEAR, date(today.year, 1, 1), date(today.year, 12, 31), tz
        )
    if token == LAST_MONTH:
        last_month_end = month_start(today) - date.resolution
        return _window(LAST_MONTH, month_start(last_month_end), last_month_end, tz)

    if token and token != CURRENT_MONTH:
        if strict:
            raise InvalidPeriodError(token)
        logger.debug(f"period_fallback: token={token!r} resolved={CURRENT_MONTH}")
    return _window(CURRENT_MONTH, month_start(today), month_end(today), tz)


def resolve_chart_period(token: Optional[str], reference: datetime) -> PeriodWindow:
    """Charts only know week, month and year windows; anything else is a month."""
    if token not in CHART_PERIOD_TOKENS:
        token = CURRENT_MONTH
    return resolve_period(token, reference)
