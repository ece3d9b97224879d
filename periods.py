"""Calendar math for spending windows and budget months.

Every range is half-open: ``start`` is included, ``end`` is not. Weeks start
on Monday 00:00 in the configured local timezone; changing the anchor would
silently move transactions between historical buckets.
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings

WEEK_START_WEEKDAY = 0  # Monday


@dataclass(frozen=True)
class Period:
    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError("Start must be before end")

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end


def local_tz(name: Optional[str] = None) -> ZoneInfo:
    return ZoneInfo(name or get_settings().timezone)


def to_utc_naive(moment: datetime) -> datetime:
    """Normalise to the naive-UTC form rows are stored in. Naive input is UTC."""
    if moment.tzinfo is None:
        return moment
    return moment.astimezone(timezone.utc).replace(tzinfo=None)


def as_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def week_start(moment: datetime, tz: ZoneInfo) -> date:
    """Local calendar date of the Monday opening the week containing ``moment``."""
    local_day = as_utc(moment).astimezone(tz).date()
    return local_day - timedelta(days=(local_day.weekday() - WEEK_START_WEEKDAY) % 7)


def week_buckets(
    as_of: datetime, window_weeks: int, tz: Optional[ZoneInfo] = None
) -> list[Period]:
    """``window_weeks`` consecutive weeks ending with the one containing ``as_of``.

    Oldest first. Boundaries are naive UTC so they compare directly with
    stored transaction dates.
    """
    if window_weeks < 1:
        raise ValueError("window_weeks must be at least 1")
    tz = tz or local_tz()
    current = week_start(as_of, tz)
    buckets: list[Period] = []
    for offset in range(window_weeks - 1, -1, -1):
        first_day = current - timedelta(weeks=offset)
        start = _local_midnight(first_day, tz)
        end = _local_midnight(first_day + timedelta(weeks=1), tz)
        buckets.append(Period(to_utc_naive(start), to_utc_naive(end)))
    return buckets


def format_month(month: Union[int, str]) -> str:
    try:
        value = int(month)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid month: {month!r}") from exc
    if not 1 <= value <= 12:
        raise ValueError(f"Invalid month: {month!r}")
    return f"{value:02d}"


def month_period(
    month: Union[int, str], year: int, tz: Optional[ZoneInfo] = None
) -> Period:
    tz = tz or local_tz()
    value = int(format_month(month))
    first = date(year, value, 1)
    if value == 12:
        next_first = date(year + 1, 1, 1)
    else:
        next_first = date(year, value + 1, 1)
    return Period(
        to_utc_naive(_local_midnight(first, tz)),
        to_utc_naive(_local_midnight(next_first, tz)),
    )


def current_month(
    now: Optional[datetime] = None, tz: Optional[ZoneInfo] = None
) -> tuple[str, int]:
    tz = tz or local_tz()
    local_now = as_utc(now or datetime.now(timezone.utc)).astimezone(tz)
    return format_month(local_now.month), local_now.year
